"""One simulation step over the heat grid.

Order of work inside a step:

1. rebuild caches if stale
2. conduct heat between neighbours (and attribute it in the ledger)
3. apply the accumulated energy to temperatures
4. recompute unit averages / active ranges, switch emitters (pre-pass)
5. pin infrastructure emitters
6. build emitter requests, budget them per unit, inject energy
7. recompute averages, ranges and comfort scores
8. switch emitters again (post-pass, seeds the next step)

All phases work on local buffers; the world is only written in the final
commit, so a step that raises leaves the grid as it was.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from core.models import TempRange, World
from simulation.comfort import active_range, comfort_score
from simulation.conduction import apply_energy, diffuse
from simulation.config import DEFAULT, SimConfig
from simulation.emitters import (
    apply_fixed_emitters,
    apply_unit_emitters,
    build_emitter_requests,
    compute_unit_power_scales,
    update_emitter_states,
)
from simulation.ledger import FlowsByUnit, accumulate_flows, add_emitter_consumption, commit_flows, reset_tick
from simulation.profiling import StepProfiler
from simulation.topology import optimise_world

logger = logging.getLogger(__name__)


@dataclass
class _StepOutcome:
    temps: NDArray[np.float64]
    flows: FlowsByUnit
    pinned: list[int]
    emitter_states: dict[int, bool]
    power_by_unit: dict[str, float]
    avg_temps: dict[str, float]
    ranges: dict[str, TempRange]
    scores: dict[str, float]


def unit_average_temps(world: World, temps: NDArray[np.float64]) -> dict[str, float]:
    """Mean temperature over each unit's owned cells (0 for empty units)."""
    n_units = len(world._unit_keys)
    if n_units == 0:
        return {}

    owner = world._unit_index_by_cell
    owned = owner >= 0
    sums = np.bincount(owner[owned], weights=temps[owned], minlength=n_units)
    counts = np.bincount(owner[owned], minlength=n_units)
    avg = np.divide(sums, counts, out=np.zeros(n_units, dtype=np.float64), where=counts > 0)
    return {unit_id: float(avg[k]) for k, unit_id in enumerate(world._unit_keys)}


def _active_ranges(world: World, seconds_of_day: float) -> dict[str, TempRange]:
    return {
        unit_id: active_range(unit, seconds_of_day)
        for unit_id, unit in world.units.items()
        if unit.runtime is not None
    }


def step_world(
    world: World,
    dt: float,
    seconds_of_day: float = 0.0,
    profiler: StepProfiler | None = None,
    config: SimConfig = DEFAULT,
) -> None:
    """Advance the grid by one explicit step of ``dt`` seconds.

    Malformed ``dt`` / ``seconds_of_day`` (non-finite, negative dt) are
    treated as zero.
    """
    if not math.isfinite(dt) or dt < 0:
        dt = 0.0
    if not math.isfinite(seconds_of_day):
        seconds_of_day = 0.0

    def mark(phase: str) -> None:
        if profiler is not None:
            profiler.mark(phase)

    if profiler is not None:
        profiler.start_step()

    optimise_world(world, config)
    mark("optimise_and_reset")

    temps = world._temp_by_cell.copy()
    delta_q, edge_flows = diffuse(world, temps, dt)
    flows = accumulate_flows(world, edge_flows)
    mark("conduction")

    temps = apply_energy(temps, delta_q, world._cell_cap_j_per_k, config.capacity_floor_j_per_k)
    mark("apply_diffusion")

    avg_temps = unit_average_temps(world, temps)
    ranges = _active_ranges(world, seconds_of_day)
    states = update_emitter_states(world, avg_temps, ranges, {})
    mark("pre_emitter_control")

    pinned = apply_fixed_emitters(world, temps)
    mark("apply_fixed_emitters")

    requests = build_emitter_requests(world, temps, states, avg_temps, ranges)
    mark("build_emitter_requests")

    scales = compute_unit_power_scales(world, requests, avg_temps, ranges, dt, config.emitter_budget_gain)
    mark("compute_power_scales")

    power_by_unit = apply_unit_emitters(world, temps, requests, scales, dt)
    mark("apply_unit_emitters")

    avg_temps = unit_average_temps(world, temps)
    ranges = _active_ranges(world, seconds_of_day)
    scores = {unit_id: comfort_score(avg_temps.get(unit_id, 0.0), r) for unit_id, r in ranges.items()}
    mark("post_emitter_metrics")

    states = update_emitter_states(world, avg_temps, ranges, states)
    mark("post_emitter_state")

    _commit(
        world,
        _StepOutcome(
            temps=temps,
            flows=flows,
            pinned=pinned,
            emitter_states=states,
            power_by_unit=power_by_unit,
            avg_temps=avg_temps,
            ranges=ranges,
            scores=scores,
        ),
        dt,
    )
    mark("commit")

    if profiler is not None:
        profiler.finish_step(len(requests))


def _commit(world: World, outcome: _StepOutcome, dt: float) -> None:
    """Write a finished step back into the world."""
    world._temp_by_cell = outcome.temps
    for cell, t in zip(world.cells, outcome.temps.tolist(), strict=True):
        cell.temperature = t
    for i in outcome.pinned:
        world.cells[i].emitting = True
    for i, on in outcome.emitter_states.items():
        world.cells[i].emitting = on

    reset_tick(world)
    commit_flows(world, outcome.flows)
    for unit_id, power_w in outcome.power_by_unit.items():
        add_emitter_consumption(world, unit_id, power_w, dt)

    for unit_id, unit in world.units.items():
        rt = unit.runtime
        if rt is None:
            continue
        rt.avg_temp = outcome.avg_temps.get(unit_id, 0.0)
        rt.comfort_range = outcome.ranges.get(unit_id, rt.comfort_range)
        score = outcome.scores.get(unit_id)
        if score is None:
            continue
        rt.comfort_tick_score = score
        rt.comfort_score_sum += score
        rt.comfort_score_samples += 1
