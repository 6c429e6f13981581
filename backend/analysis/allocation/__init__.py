"""Heating cost allocation over exported simulation results."""

from analysis.allocation.fair import compute_fair_allocation
from analysis.allocation.practical import compute_practical_allocation
from analysis.allocation.types import (
    DEFAULT_ALLOCATION_CONFIG,
    AllocationComputation,
    AllocationConfig,
    AllocationMeta,
    AllocationRow,
    empty_allocation,
)

__all__ = [
    "DEFAULT_ALLOCATION_CONFIG",
    "AllocationComputation",
    "AllocationConfig",
    "AllocationMeta",
    "AllocationRow",
    "compute_fair_allocation",
    "compute_practical_allocation",
    "empty_allocation",
]
