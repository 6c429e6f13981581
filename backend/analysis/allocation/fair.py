"""Fair policy: bill by produced energy corrected for heat exchanged.

A payer that received net heat from a neighbour pays for it, the sender
is credited. Part of each payer's outside loss is spread over the other
payers, and the shared unit's production is split by flow-tilted weights.
"""

import logging

from analysis.allocation.common import base_row, clamp, finalize_rows, finite, flow_out_to, payer_units
from analysis.allocation.types import (
    DEFAULT_ALLOCATION_CONFIG,
    AllocationComputation,
    AllocationConfig,
    AllocationRow,
    empty_allocation,
)
from simulation.results import SimulationResults, UnitResult

logger = logging.getLogger(__name__)


def _apply_neighbour_transfers(payers: list[UnitResult], rows: dict[str, AllocationRow]) -> None:
    for sender in payers:
        for receiver in payers:
            if sender.id == receiver.id:
                continue
            sent = flow_out_to(sender, receiver.id)
            if sent <= 0:
                continue
            rows[sender.id].neighbor_transfer_j -= sent
            rows[sender.id].base_cost_j -= sent
            rows[receiver.id].neighbor_transfer_j += sent
            rows[receiver.id].base_cost_j += sent


def _apply_outside_subsidy(
    payers: list[UnitResult],
    rows: dict[str, AllocationRow],
    outside_target_id: str,
    fraction: float,
) -> None:
    n = len(payers)
    if n <= 1:
        return
    losses = {u.id: flow_out_to(u, outside_target_id) for u in payers}
    total_loss = sum(losses.values())
    for unit in payers:
        own = losses[unit.id]
        others = total_loss - own
        rows[unit.id].outside_adjustment_j += fraction * (others / (n - 1) - own)


def shared_weights(
    shared: UnitResult,
    payers: list[UnitResult],
    config: AllocationConfig = DEFAULT_ALLOCATION_CONFIG,
) -> dict[str, float]:
    """Tilt weight per payer: more for payers the shared unit heated."""
    shared_base = max(0.0, finite(shared.total_energy_produced_j))
    denom = max(shared_base, 1.0)
    weights: dict[str, float] = {}
    for unit in payers:
        tilt = flow_out_to(shared, unit.id) - flow_out_to(unit, shared.id)
        weights[unit.id] = clamp(
            1 + config.shared_flow_tilt * tilt / denom,
            config.shared_weight_min,
            config.shared_weight_max,
        )
    return weights


def compute_fair_allocation(
    results: SimulationResults,
    total_cost: float,
    shared_unit_id: str | None = None,
    outside_target_id: str | None = None,
    config: AllocationConfig = DEFAULT_ALLOCATION_CONFIG,
) -> AllocationComputation:
    shared, payers = payer_units(results, shared_unit_id)
    if not payers:
        return empty_allocation()

    rows: dict[str, AllocationRow] = {}
    for unit in payers:
        row = base_row(unit)
        row.base_cost_j = row.produced_j
        rows[unit.id] = row

    _apply_neighbour_transfers(payers, rows)

    if outside_target_id:
        _apply_outside_subsidy(payers, rows, outside_target_id, config.outside_subsidy)

    if shared is not None:
        shared_base = max(0.0, finite(shared.total_energy_produced_j))
        weights = shared_weights(shared, payers, config)
        weight_sum = sum(weights.values())
        if weight_sum > 0 and shared_base > 0:
            for unit_id, weight in weights.items():
                rows[unit_id].shared_cost_j = shared_base * weight / weight_sum

    for row in rows.values():
        row.raw_billable_j = row.base_cost_j + row.outside_adjustment_j + row.shared_cost_j
        row.billable_j = max(0.0, row.raw_billable_j)

    logger.info("Fair allocation over %d payers (shared=%s)", len(payers), shared.id if shared else None)
    return finalize_rows(list(rows.values()), total_cost)
