"""Core domain models for the heat grid."""

from core.models import (
    DIR_DOWN,
    DIR_LEFT,
    DIR_RIGHT,
    DIR_UP,
    DIR_VECTORS,
    NO_TARGET,
    OUTSIDE,
    OUTSIDE_TARGET_ID,
    SHARED_UNIT_ID,
    BoundaryTarget,
    Cell,
    Material,
    NoTarget,
    OutsideTarget,
    OwnedParams,
    SharedParams,
    TempRange,
    Unit,
    UnitParams,
    UnitRuntime,
    UnitTarget,
    World,
    params_kind,
    target_key,
)

__all__ = [
    "DIR_DOWN",
    "DIR_LEFT",
    "DIR_RIGHT",
    "DIR_UP",
    "DIR_VECTORS",
    "NO_TARGET",
    "OUTSIDE",
    "OUTSIDE_TARGET_ID",
    "SHARED_UNIT_ID",
    "BoundaryTarget",
    "Cell",
    "Material",
    "NoTarget",
    "OutsideTarget",
    "OwnedParams",
    "SharedParams",
    "TempRange",
    "Unit",
    "UnitParams",
    "UnitRuntime",
    "UnitTarget",
    "World",
    "params_kind",
    "target_key",
]
