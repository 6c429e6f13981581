"""Helpers shared by the fair and practical policies."""

import math

from analysis.allocation.types import AllocationComputation, AllocationMeta, AllocationRow
from simulation.results import SimulationResults, UnitResult

# Costs and produced energy at or below this are treated as zero
_ZERO_EPS = 1e-9


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def finite(v: float | None) -> float:
    """Non-finite and missing numbers count as zero."""
    if v is None or not math.isfinite(v):
        return 0.0
    return float(v)


def flow_out_to(unit: UnitResult, target_id: str | None) -> float:
    """Net energy the unit sent toward ``target_id`` (0 if it received)."""
    if not target_id:
        return 0.0
    return max(0.0, finite(unit.net_heat_flow_total_j_by_target.get(target_id, 0.0)))


def payer_units(results: SimulationResults, shared_unit_id: str | None) -> tuple[UnitResult | None, list[UnitResult]]:
    """Split the shared unit (if configured and present) from the payers."""
    shared = None
    if shared_unit_id:
        shared = next((u for u in results.units if u.id == shared_unit_id), None)
    payers = [u for u in results.units if shared is None or u.id != shared.id]
    return shared, payers


def base_row(unit: UnitResult) -> AllocationRow:
    return AllocationRow(
        id=unit.id,
        name=unit.name,
        area_cells=max(0, int(finite(unit.area_cells))),
        produced_j=finite(unit.total_energy_produced_j),
        comfort_score=unit.avg_comfort_score,
    )


def score_payment_happiness(final_cost: float, self_pay_cost: float) -> float:
    """100 when the bill equals what the unit would self-pay, linear falloff.

    A unit that would self-pay nothing scores 100 only if it is billed
    nothing as well.
    """
    if self_pay_cost <= _ZERO_EPS:
        return 100.0 if final_cost <= _ZERO_EPS else 0.0
    rel_diff = abs(final_cost - self_pay_cost) / self_pay_cost
    return clamp(100 * (1 - rel_diff), 0.0, 100.0)


def finalize_rows(rows: list[AllocationRow], total_cost: float) -> AllocationComputation:
    """Turn billable energy into costs; rows come back by descending cost."""
    if not rows:
        return AllocationComputation()

    total_cost = finite(total_cost)
    n = len(rows)
    base_total = sum(finite(r.raw_billable_j) for r in rows)
    billable_total = sum(finite(r.billable_j) for r in rows)
    produced_total = sum(finite(r.produced_j) for r in rows)

    for row in rows:
        row.share_ratio = finite(row.billable_j) / billable_total if billable_total > 0 else 1 / n
        row.final_cost = total_cost * row.share_ratio
        row.self_pay_cost = total_cost * finite(row.produced_j) / produced_total if produced_total > 0 else total_cost / n
        row.payment_happiness_score = score_payment_happiness(row.final_cost, row.self_pay_cost)

    rows.sort(key=lambda r: r.final_cost, reverse=True)
    return AllocationComputation(rows=rows, meta=AllocationMeta(base_total_j=base_total, billable_total_j=billable_total))
