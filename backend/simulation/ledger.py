"""Per-unit heat-flow ledger.

Each unit keeps two maps from target id (another unit or OUTSIDE) to
energy [J]: what crossed its boundary this tick, and the running total.
Positive values mean energy left the unit toward that target.
"""

import math

import numpy as np
from numpy.typing import NDArray

from core.models import World

type FlowsByUnit = dict[str, dict[str, float]]


def accumulate_flows(world: World, edge_flows: NDArray[np.float64]) -> FlowsByUnit:
    """Aggregate one step's conducted energy per (unit, target).

    Uses the ledger tables built by ``optimise_world``: every booked edge
    side contributes ``sign * q`` to its unit's entry for the boundary
    target resolved in that edge's direction.
    """
    n_units = len(world._unit_keys)
    n_targets = len(world._target_keys)
    if n_units == 0 or world._ledger_edge.size == 0:
        return {}

    amounts = edge_flows[world._ledger_edge] * world._ledger_sign
    amounts = np.where(np.isfinite(amounts), amounts, 0.0)

    matrix = np.zeros((n_units, n_targets), dtype=np.float64)
    np.add.at(matrix, (world._ledger_unit, world._ledger_target), amounts)

    flows: FlowsByUnit = {}
    rows, cols = np.nonzero(matrix)
    for u, t in zip(rows.tolist(), cols.tolist(), strict=True):
        flows.setdefault(world._unit_keys[u], {})[world._target_keys[t]] = float(matrix[u, t])
    return flows


def reset_tick(world: World) -> None:
    """Clear per-tick ledger and emitter counters for every unit."""
    for unit in world.units.values():
        rt = unit.runtime
        if rt is None:
            continue
        rt.heat_flow_tick = {}
        rt.emitter_power_tick_w = 0.0
        rt.emitter_energy_tick_j = 0.0


def add_heat_flow(world: World, unit_id: str, target_id: str, amount: float) -> None:
    """Book energy leaving ``unit_id`` toward ``target_id`` (tick and total)."""
    unit = world.units.get(unit_id)
    if unit is None or unit.runtime is None:
        return
    if not math.isfinite(amount) or amount == 0:
        return
    rt = unit.runtime
    rt.heat_flow_tick[target_id] = rt.heat_flow_tick.get(target_id, 0.0) + amount
    rt.heat_flow_total[target_id] = rt.heat_flow_total.get(target_id, 0.0) + amount


def commit_flows(world: World, flows: FlowsByUnit) -> None:
    for unit_id, by_target in flows.items():
        for target_id, amount in by_target.items():
            add_heat_flow(world, unit_id, target_id, amount)


def add_emitter_consumption(world: World, unit_id: str, power_w: float, dt: float) -> None:
    """Book electrical draw of a unit's emitters."""
    unit = world.units.get(unit_id)
    if unit is None or unit.runtime is None:
        return
    if not math.isfinite(power_w) or power_w <= 0:
        return
    if not math.isfinite(dt) or dt <= 0:
        return

    energy_j = power_w * dt
    rt = unit.runtime
    rt.emitter_power_tick_w += power_w
    rt.emitter_energy_tick_j += energy_j
    rt.emitter_energy_total_j += energy_j
