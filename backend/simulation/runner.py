"""Simulation facade: owns the grid, simulated time and the editing lock."""

import logging
from collections.abc import Callable

from core.models import (
    OUTSIDE_TARGET_ID,
    SHARED_UNIT_ID,
    Material,
    OwnedParams,
    Unit,
    World,
    params_kind,
)
from data.defaults import default_materials, default_units
from data.weather import DayTemperature, daily_temp_at, series_temp_at
from simulation import world as grid
from simulation.comfort import active_range, is_home_now
from simulation.config import DEFAULT, SimConfig
from simulation.engine import step_world
from simulation.profiling import StepProfiler
from simulation.results import HeatFlowRow, SimulationResults, UnitResult, UnitRuntimeRow

logger = logging.getLogger(__name__)

# Materials that can never be removed from the palette
_RESERVED_MATERIALS = frozenset({"air", "outside"})
# Flows smaller than this are treated as "never happened" in snapshots
_FLOW_EPS = 1e-12
_J_PER_KWH = 3_600_000


class HeatSimulation:
    """Single-writer owner of one heat grid.

    Editing is only allowed while the simulation is unlocked (no ticks
    taken yet); every edit marks the grid's caches stale.
    """

    def __init__(self, config: SimConfig = DEFAULT, profiler: StepProfiler | None = None) -> None:
        self.config = config
        self.profiler = profiler
        self.world: World | None = None
        self.tick: int = 0
        self.sim_time_s: float = 0.0

    # --- time -------------------------------------------------------------

    @property
    def locked(self) -> bool:
        return self.tick > 0

    @property
    def end_sim_s(self) -> float | None:
        end = self.config.end_after_s
        if end is None or end <= 0:
            return None
        return end

    @property
    def ended(self) -> bool:
        end = self.end_sim_s
        return end is not None and self.sim_time_s >= end

    @property
    def seconds_of_day(self) -> float:
        start = self.config.start_day_time_min * 60
        return (self.sim_time_s + start) % 86400

    @property
    def day_index(self) -> int:
        return int(self.sim_time_s // 86400)

    # --- lifecycle --------------------------------------------------------

    def setup(self, layout: Callable[[World], None] | None = None) -> World:
        """Create a fresh grid from the configured size and default palettes."""
        cfg = self.config
        w = max(cfg.min_side, min(cfg.max_side, int(cfg.width)))
        h = max(cfg.min_side, min(cfg.max_side, int(cfg.height)))

        self.world = grid.create_world(
            w,
            h,
            cfg.init_temp_c,
            materials=default_materials(),
            units=default_units(),
            default_material_id=cfg.default_material_id,
            default_unit_id=None,
            config=cfg,
        )
        if layout is not None:
            layout(self.world)
        self.tick = 0
        self.sim_time_s = 0.0
        self._sync_outside_emit_temp()
        logger.info("Simulation set up: %dx%d grid", w, h)
        return self.world

    def reset_temperature_and_time(self) -> None:
        if self.world is None:
            return
        for cell in self.world.cells:
            cell.temperature = self.config.init_temp_c
            cell.emitting = False
        self.tick = 0
        self.sim_time_s = 0.0
        grid.mark_stale(self.world)
        self._sync_outside_emit_temp()

    def step_once(self) -> bool:
        """Advance one tick. Returns False once the end limit is reached."""
        if self.world is None or self.ended:
            return False

        self._sync_outside_emit_temp()
        step_world(self.world, self.config.dt, self.seconds_of_day, profiler=self.profiler, config=self.config)
        self.tick += 1
        self.sim_time_s += self.config.dt

        end = self.end_sim_s
        if end is not None and self.sim_time_s >= end:
            self.sim_time_s = end
            logger.info("Simulation reached end limit after %d ticks", self.tick)
        return True

    def run(self, steps: int) -> int:
        """Step up to ``steps`` times; returns the number actually taken."""
        taken = 0
        for _ in range(max(0, steps)):
            if not self.step_once():
                break
            taken += 1
        return taken

    def outside_temp_at(self, elapsed_s: float) -> float:
        cfg = self.config
        match cfg.outside_temp_mode:
            case "series":
                return series_temp_at(elapsed_s, cfg.outside_temp_series, cfg.outside_temp_c)
            case "daily":
                day = DayTemperature(min_c=cfg.outside_daily_min_c, max_c=cfg.outside_daily_max_c)
                return daily_temp_at(elapsed_s, day, start_s=cfg.start_day_time_min * 60)
            case _:
                return cfg.outside_temp_c

    def _sync_outside_emit_temp(self) -> None:
        if self.world is None:
            return
        outside = self.world.materials.get(self.config.outside_material_id)
        if outside is None:
            return
        outside.emit_temp = self.outside_temp_at(self.sim_time_s)

    # --- editing (unlocked only) ------------------------------------------

    def paint_material(self, index: int, material_id: str) -> bool:
        if self.world is None or self.locked:
            return False
        return grid.paint_material(self.world, index, material_id)

    def fill_material(self, index: int, material_id: str) -> bool:
        if self.world is None or self.locked:
            return False
        return grid.flood_fill_material(self.world, index, material_id) > 0

    def assign_unit(self, index: int, unit_id: str | None) -> bool:
        if self.world is None or self.locked:
            return False
        return grid.assign_unit(self.world, index, unit_id)

    def fill_unit(self, index: int, unit_id: str | None) -> bool:
        if self.world is None or self.locked:
            return False
        return grid.flood_fill_unit(self.world, index, unit_id) > 0

    def upsert_material(self, material: Material) -> bool:
        if self.world is None or self.locked:
            return False
        grid.upsert_material(self.world, material)
        return True

    def remove_material(self, material_id: str, fallback_id: str = "air") -> bool:
        if self.world is None or self.locked or material_id in _RESERVED_MATERIALS:
            return False
        return grid.delete_material(self.world, material_id, fallback_id)

    def add_unit(self, unit: Unit) -> bool:
        if self.world is None or self.locked:
            return False
        return grid.add_unit(self.world, unit)

    def update_unit(self, unit: Unit) -> bool:
        if self.world is None or self.locked:
            return False
        return grid.update_unit(self.world, unit)

    def remove_unit(self, unit_id: str) -> bool:
        if self.world is None or self.locked:
            return False
        return grid.remove_unit(self.world, unit_id)

    # --- snapshots --------------------------------------------------------

    def runtime_rows(self) -> list[UnitRuntimeRow]:
        """Per-unit snapshot, shared zone first, then by id."""
        if self.world is None:
            return []

        units = sorted(self.world.units.values(), key=lambda u: (u.id != SHARED_UNIT_ID, u.id))
        return [self._runtime_row(u) for u in units]

    def _target_name(self, target_id: str) -> str:
        if target_id == OUTSIDE_TARGET_ID:
            return "Outside"
        if self.world is not None and target_id in self.world.units:
            return self.world.units[target_id].name
        return target_id

    def _runtime_row(self, unit: Unit) -> UnitRuntimeRow:
        sod = self.seconds_of_day
        rt = unit.runtime

        heat_flows: list[HeatFlowRow] = []
        if rt is not None:
            for target_id in rt.heat_flow_tick.keys() | rt.heat_flow_total.keys():
                tick_j = rt.heat_flow_tick.get(target_id, 0.0)
                total_j = rt.heat_flow_total.get(target_id, 0.0)
                if abs(tick_j) <= _FLOW_EPS and abs(total_j) <= _FLOW_EPS:
                    continue
                heat_flows.append(
                    HeatFlowRow(
                        target_id=target_id,
                        target_name=self._target_name(target_id),
                        tick_j=tick_j,
                        total_j=total_j,
                    )
                )
            heat_flows.sort(key=lambda f: f.target_name)

        schedule: tuple[int, int] | None = None
        home: bool | None = None
        if isinstance(unit.params, OwnedParams):
            schedule = (unit.params.home_from_min, unit.params.home_to_min)
            home = is_home_now(unit.params, sod)

        return UnitRuntimeRow(
            id=unit.id,
            name=unit.name,
            color=unit.color,
            kind=params_kind(unit.params),
            schedule=schedule,
            home=home,
            active_range=active_range(unit, sod),
            avg_temp=rt.avg_temp if rt else None,
            cells=len(rt.all_cells) if rt else 0,
            heaters=len(rt.heater_cells) if rt else 0,
            comfort_tick=rt.comfort_tick_score if rt else None,
            comfort_avg=rt.comfort_avg_score if rt else None,
            emitter_power_tick_w=rt.emitter_power_tick_w if rt else None,
            emitter_energy_tick_j=rt.emitter_energy_tick_j if rt else None,
            emitter_energy_total_j=rt.emitter_energy_total_j if rt else None,
            emitter_energy_total_kwh=rt.emitter_energy_total_j / _J_PER_KWH if rt else None,
            heat_flows=heat_flows,
        )

    def export_results(self, name: str = "") -> SimulationResults | None:
        """Totals consumed by cost allocation; None before the first tick."""
        if self.world is None or self.tick <= 0:
            return None

        units = [
            UnitResult(
                id=row.id,
                name=row.name,
                avg_comfort_score=row.comfort_avg,
                total_energy_produced_j=row.emitter_energy_total_j or 0.0,
                area_cells=row.cells,
                net_heat_flow_total_j_by_target={f.target_id: f.total_j for f in row.heat_flows},
            )
            for row in self.runtime_rows()
        ]
        return SimulationResults(
            version=1,
            name=name.strip() or "simulation-results",
            tick=self.tick,
            simulation_length_s=self.sim_time_s,
            ended=self.ended,
            total_house_heating_energy_j=sum(u.total_energy_produced_j for u in units),
            units=units,
        )
