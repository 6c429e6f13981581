"""Read-only snapshots exported from a simulation run."""

from dataclasses import dataclass, field

from core.models import TempRange


@dataclass
class HeatFlowRow:
    target_id: str
    target_name: str
    tick_j: float
    total_j: float  # positive = energy left the unit toward target


@dataclass
class UnitRuntimeRow:
    """Per-unit state for display and export."""

    id: str
    name: str
    color: str
    kind: str  # "shared" or "unit"
    schedule: tuple[int, int] | None  # (home_from_min, home_to_min)
    home: bool | None
    active_range: TempRange
    avg_temp: float | None
    cells: int
    heaters: int
    comfort_tick: float | None
    comfort_avg: float | None
    emitter_power_tick_w: float | None
    emitter_energy_tick_j: float | None
    emitter_energy_total_j: float | None
    emitter_energy_total_kwh: float | None
    heat_flows: list[HeatFlowRow] = field(default_factory=list)


@dataclass
class UnitResult:
    """Totals for one unit after a run - input to cost allocation."""

    id: str
    name: str
    avg_comfort_score: float | None
    total_energy_produced_j: float
    area_cells: int
    net_heat_flow_total_j_by_target: dict[str, float] = field(default_factory=dict)


@dataclass
class SimulationResults:
    version: int
    name: str
    tick: int
    simulation_length_s: float
    ended: bool
    total_house_heating_energy_j: float
    units: list[UnitResult]
