"""Practical policy: area-based base pool plus position-corrected usage.

The house total is split into a base pool shared by floor area and a
variable pool shared by produced energy scaled with a position
coefficient, so units with an exposed position are not billed for it in
full. Per-area cost is then kept within fixed bounds of the average.
"""

import logging
import math

from analysis.allocation.common import base_row, clamp, finalize_rows, finite, flow_out_to, payer_units
from analysis.allocation.types import (
    DEFAULT_ALLOCATION_CONFIG,
    AllocationComputation,
    AllocationConfig,
    AllocationRow,
    empty_allocation,
)
from simulation.results import SimulationResults

logger = logging.getLogger(__name__)


def position_coefficient(unit_density: float, avg_density: float, config: AllocationConfig = DEFAULT_ALLOCATION_CONFIG) -> float:
    """sqrt(avg / unit) of outside loss per area, clamped.

    Units losing more than average get a coefficient below 1.
    """
    if avg_density <= 0:
        return 1.0
    raw = math.sqrt(avg_density / max(1e-9, unit_density))
    return clamp(raw, config.position_coef_min, config.position_coef_max)


def enforce_area_cost_bounds(
    rows: list[AllocationRow],
    base_pool_j: float,
    variable_pool_j: float,
    config: AllocationConfig = DEFAULT_ALLOCATION_CONFIG,
) -> None:
    """Keep each row's cost per cell within [min, max] x the average.

    Rows that break a bound are locked at it and the rest of the variable
    pool is redistributed over the unlocked rows, by corrected consumption
    or by area when those are all zero. Afterwards every row is rescaled
    so the pool total is preserved exactly.
    """
    total_area = sum(r.area_cells for r in rows)
    if total_area <= 0 or variable_pool_j <= 0:
        return

    total_pool = base_pool_j + variable_pool_j
    avg_cost_per_area = total_pool / total_area
    min_cost = {r.id: config.area_min_ratio * avg_cost_per_area * r.area_cells for r in rows}
    max_cost = {r.id: config.area_max_ratio * avg_cost_per_area * r.area_cells for r in rows}

    variable = {r.id: max(0.0, r.shared_cost_j) for r in rows}
    weights = {r.id: max(0.0, finite(r.corrected_consumption_j)) for r in rows}
    locked: set[str] = set()

    for _ in range(len(rows) + 2):
        active = [r for r in rows if r.id not in locked]
        if not active:
            break

        used_by_locked = sum(variable[r_id] for r_id in locked)
        remaining = max(0.0, variable_pool_j - used_by_locked)

        weight_sum = sum(weights[r.id] for r in active)
        if weight_sum <= 0:
            for r in active:
                weights[r.id] = float(r.area_cells)
            weight_sum = sum(weights[r.id] for r in active)
        if weight_sum <= 0:
            break

        for r in active:
            variable[r.id] = remaining * weights[r.id] / weight_sum

        changed = False
        for r in active:
            current = r.base_cost_j + variable[r.id]
            if current < min_cost[r.id]:
                variable[r.id] = max(0.0, min_cost[r.id] - r.base_cost_j)
            elif current > max_cost[r.id]:
                variable[r.id] = max(0.0, max_cost[r.id] - r.base_cost_j)
            else:
                continue
            locked.add(r.id)
            changed = True

        if not changed:
            break

    for r in rows:
        r.shared_cost_j = max(0.0, variable[r.id])

    total_after = sum(r.base_cost_j + r.shared_cost_j for r in rows)
    if total_after <= 0:
        for r in rows:
            r.raw_billable_j = r.billable_j = r.base_cost_j + r.shared_cost_j
        return

    rescale = total_pool / total_after
    for r in rows:
        r.base_cost_j *= rescale
        r.shared_cost_j *= rescale
        r.raw_billable_j = r.billable_j = r.base_cost_j + r.shared_cost_j


def compute_practical_allocation(
    results: SimulationResults,
    total_cost: float,
    shared_unit_id: str | None = None,
    outside_target_id: str | None = None,
    base_share_ratio: float = 0.3,
    config: AllocationConfig = DEFAULT_ALLOCATION_CONFIG,
) -> AllocationComputation:
    _, payers = payer_units(results, shared_unit_id)
    if not payers:
        return empty_allocation()

    pool = max(0.0, finite(results.total_house_heating_energy_j))
    base_pool = pool * clamp(finite(base_share_ratio), 0.0, 1.0)
    variable_pool = pool - base_pool

    rows = [base_row(u) for u in payers]
    n = len(rows)
    total_area = sum(r.area_cells for r in rows)

    def area_share(row: AllocationRow) -> float:
        return row.area_cells / total_area if total_area > 0 else 1 / n

    loss_density = {
        u.id: (flow_out_to(u, outside_target_id) if outside_target_id else 0.0) / max(1, r.area_cells)
        for u, r in zip(payers, rows, strict=True)
    }
    avg_density = sum(loss_density.values()) / n

    for row in rows:
        row.base_cost_j = base_pool * area_share(row)
        row.position_coefficient = position_coefficient(loss_density[row.id], avg_density, config)
        row.corrected_consumption_j = max(0.0, row.produced_j) * row.position_coefficient

    corrected_sum = sum(r.corrected_consumption_j or 0.0 for r in rows)
    for row in rows:
        if corrected_sum > 0:
            row.shared_cost_j = variable_pool * (row.corrected_consumption_j or 0.0) / corrected_sum
        else:
            row.shared_cost_j = variable_pool * area_share(row)
        row.raw_billable_j = row.billable_j = row.base_cost_j + row.shared_cost_j

    enforce_area_cost_bounds(rows, base_pool, variable_pool, config)

    logger.info("Practical allocation over %d payers (base share %.2f)", n, clamp(finite(base_share_ratio), 0.0, 1.0))
    return finalize_rows(rows, total_cost)
