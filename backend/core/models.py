"""Core data models for the heat grid and its units."""

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

SHARED_UNIT_ID = "SHARED"
OUTSIDE_TARGET_ID = "OUTSIDE"

# Direction order used by the flattened boundary map: index * 4 + dir
DIR_LEFT = 0
DIR_RIGHT = 1
DIR_UP = 2
DIR_DOWN = 3
DIR_VECTORS: tuple[tuple[int, int], ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))


@dataclass(frozen=True)
class TempRange:
    min: float
    max: float

    @property
    def width(self) -> float:
        return self.max - self.min

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2


UNBOUNDED_RANGE = TempRange(min=float("-inf"), max=float("inf"))


@dataclass
class Material:
    """A material in the grid palette.

    Thermal properties are SI: rho [kg/m³], cp [J/(kg·K)],
    conductivity λ [W/(m·K)]. A material with ``emit_temp`` set is an
    emitter (heater, AC, or the outside boundary).
    """

    id: str
    name: str
    rho: float
    cp: float
    conductivity: float
    color: str = "#808080"
    emit_temp: float | None = None  # drive temperature (°C)
    emit_power_w: float | None = None  # electrical draw while active

    @property
    def is_emitter(self) -> bool:
        return self.emit_temp is not None


# ---------------------------------------------------------------------------
# Unit parameter variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SharedParams:
    """Shared zone: a single comfort range, no schedule."""

    comfort_range: TempRange


@dataclass(frozen=True)
class OwnedParams:
    """Apartment with a home/away schedule (minutes of day, 0-1439)."""

    home_from_min: int
    home_to_min: int
    home: TempRange
    away: TempRange


type UnitParams = SharedParams | OwnedParams


def params_kind(params: UnitParams) -> str:
    """Stable string identifier for serialisation / API responses."""
    match params:
        case SharedParams():
            return "shared"
        case OwnedParams():
            return "unit"


# ---------------------------------------------------------------------------
# Boundary target variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NoTarget:
    """Ray re-entered the same unit or left the grid unresolved."""


@dataclass(frozen=True)
class OutsideTarget:
    """Edge faces the outside (grid border or an outside material cell)."""


@dataclass(frozen=True)
class UnitTarget:
    """Edge faces another unit."""

    unit_id: str


type BoundaryTarget = NoTarget | OutsideTarget | UnitTarget

NO_TARGET = NoTarget()
OUTSIDE = OutsideTarget()


def target_key(target: BoundaryTarget) -> str | None:
    """Ledger key for a boundary target (None when unresolved)."""
    match target:
        case NoTarget():
            return None
        case OutsideTarget():
            return OUTSIDE_TARGET_ID
        case UnitTarget(unit_id=unit_id):
            return unit_id


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------


@dataclass
class Cell:
    temperature: float  # °C
    material_id: str
    unit_id: str | None = None  # None = unowned infrastructure
    emitting: bool = False


@dataclass
class UnitRuntime:
    """Per-unit runtime state, rebuilt on every cache refresh."""

    all_cells: list[int] = field(default_factory=list)
    heater_cells: list[int] = field(default_factory=list)
    # Heat capacity of non-emitter cells [J/K]
    total_cap_j_per_k: float = 0.0
    avg_temp: float = 0.0
    comfort_range: TempRange = UNBOUNDED_RANGE
    # cell index -> targets (left, right, up, down)
    boundary_targets_by_cell: dict[int, tuple[BoundaryTarget, ...]] = field(default_factory=dict)
    # target id -> energy [J], positive = leaving this unit
    heat_flow_tick: dict[str, float] = field(default_factory=dict)
    heat_flow_total: dict[str, float] = field(default_factory=dict)
    comfort_tick_score: float = 100.0
    comfort_score_sum: float = 0.0
    comfort_score_samples: int = 0
    emitter_power_tick_w: float = 0.0
    emitter_energy_tick_j: float = 0.0
    emitter_energy_total_j: float = 0.0

    @property
    def comfort_avg_score(self) -> float:
        if self.comfort_score_samples == 0:
            return 100.0
        return self.comfort_score_sum / self.comfort_score_samples


@dataclass
class Unit:
    id: str
    name: str
    color: str
    params: UnitParams
    runtime: UnitRuntime | None = None


def _empty_float() -> NDArray[np.float64]:
    return np.zeros(0, dtype=np.float64)


def _empty_int() -> NDArray[np.int64]:
    return np.zeros(0, dtype=np.int64)


@dataclass
class World:
    """Rectangular cell grid plus palettes and derived caches.

    Cells, materials and units are authoritative. Everything prefixed with
    an underscore is derived by ``simulation.topology.optimise_world`` and
    is only valid while ``stale`` is False.
    """

    width: int
    height: int
    cells: list[Cell]
    materials: dict[str, Material]
    units: dict[str, Unit]
    cell_volume_m3: float
    edge_area_m2: float
    edge_length_m: float
    stale: bool = True

    # Ordered unit ids; unit index per cell points into this list (-1 = none)
    _unit_keys: list[str] = field(default_factory=list, repr=False)
    _unit_index_by_cell: NDArray[np.int64] = field(default_factory=_empty_int, repr=False)
    _temp_by_cell: NDArray[np.float64] = field(default_factory=_empty_float, repr=False)
    _cell_cap_j_per_k: NDArray[np.float64] = field(default_factory=_empty_float, repr=False)
    # (h, w-1) conductance between (y, x) and (y, x+1) [W/K]
    _edge_g_right: NDArray[np.float64] = field(default_factory=_empty_float, repr=False)
    # (h-1, w) conductance between (y, x) and (y+1, x) [W/K]
    _edge_g_down: NDArray[np.float64] = field(default_factory=_empty_float, repr=False)
    _unit_emitter_cells: list[int] = field(default_factory=list, repr=False)
    _fixed_emitter_cells: list[int] = field(default_factory=list, repr=False)
    # Flattened directional map: [cell * 4 + dir]
    _boundary_target_by_dir: list[BoundaryTarget] = field(default_factory=list, repr=False)
    # Ledger keys: unit ids followed by OUTSIDE_TARGET_ID
    _target_keys: list[str] = field(default_factory=list, repr=False)
    # Parallel arrays: flat edge index, owning unit index, target index, sign
    _ledger_edge: NDArray[np.int64] = field(default_factory=_empty_int, repr=False)
    _ledger_unit: NDArray[np.int64] = field(default_factory=_empty_int, repr=False)
    _ledger_target: NDArray[np.int64] = field(default_factory=_empty_int, repr=False)
    _ledger_sign: NDArray[np.float64] = field(default_factory=_empty_float, repr=False)

    @property
    def size(self) -> int:
        return self.width * self.height
