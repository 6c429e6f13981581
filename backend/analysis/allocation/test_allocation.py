"""Tests for the fair and practical cost allocation policies."""

import math

import pytest

from analysis.allocation import compute_fair_allocation, compute_practical_allocation
from analysis.allocation.common import finalize_rows, flow_out_to, score_payment_happiness
from analysis.allocation.fair import shared_weights
from analysis.allocation.practical import enforce_area_cost_bounds, position_coefficient
from analysis.allocation.types import AllocationRow
from simulation.results import SimulationResults, UnitResult

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _unit(
    unit_id: str,
    produced: float,
    area: int = 10,
    flows: dict[str, float] | None = None,
) -> UnitResult:
    return UnitResult(
        id=unit_id,
        name=f"Unit {unit_id}",
        avg_comfort_score=90.0,
        total_energy_produced_j=produced,
        area_cells=area,
        net_heat_flow_total_j_by_target=flows or {},
    )


def _results(*units: UnitResult, house_total: float | None = None) -> SimulationResults:
    return SimulationResults(
        version=1,
        name="test",
        tick=100,
        simulation_length_s=100.0,
        ended=True,
        total_house_heating_energy_j=(
            house_total if house_total is not None else sum(u.total_energy_produced_j for u in units)
        ),
        units=list(units),
    )


def _by_id(rows: list[AllocationRow]) -> dict[str, AllocationRow]:
    return {r.id: r for r in rows}


# -----------------------------------------------------------------------------
# Shared helpers
# -----------------------------------------------------------------------------


def test_flow_out_to_ignores_inflow_and_bad_numbers() -> None:
    unit = _unit("A", 0, flows={"B": 50.0, "C": -20.0, "D": math.nan, "E": math.inf})
    assert flow_out_to(unit, "B") == 50.0
    assert flow_out_to(unit, "C") == 0.0
    assert flow_out_to(unit, "D") == 0.0
    assert flow_out_to(unit, "E") == 0.0
    assert flow_out_to(unit, "missing") == 0.0
    assert flow_out_to(unit, None) == 0.0


def test_payment_happiness() -> None:
    assert score_payment_happiness(10.0, 10.0) == 100.0
    assert score_payment_happiness(15.0, 10.0) == pytest.approx(50.0)
    assert score_payment_happiness(25.0, 10.0) == 0.0
    assert score_payment_happiness(0.0, 0.0) == 100.0
    assert score_payment_happiness(5.0, 0.0) == 0.0


def test_finalize_equal_split_when_nothing_billable() -> None:
    rows = [
        AllocationRow(id="A", name="A", area_cells=1, produced_j=0.0, comfort_score=None),
        AllocationRow(id="B", name="B", area_cells=1, produced_j=0.0, comfort_score=None),
    ]
    result = finalize_rows(rows, 80.0)
    for row in result.rows:
        assert row.share_ratio == pytest.approx(0.5)
        assert row.final_cost == pytest.approx(40.0)
        assert row.self_pay_cost == pytest.approx(40.0)
        assert row.payment_happiness_score == pytest.approx(100.0)
    assert result.meta.billable_total_j == 0.0


# -----------------------------------------------------------------------------
# Fair policy
# -----------------------------------------------------------------------------


def test_fair_single_producer_pays_everything() -> None:
    result = compute_fair_allocation(_results(_unit("A", 1000), _unit("B", 0)), 100.0)
    rows = _by_id(result.rows)

    assert rows["A"].share_ratio == pytest.approx(1.0)
    assert rows["A"].final_cost == pytest.approx(100.0)
    assert rows["B"].final_cost == pytest.approx(0.0)
    assert rows["B"].self_pay_cost == pytest.approx(0.0)
    assert rows["B"].payment_happiness_score == 100.0
    assert [r.id for r in result.rows] == ["A", "B"]


def test_fair_neighbour_transfer_and_outside_subsidy() -> None:
    a = _unit("A", 1000, flows={"B": 200.0, "OUTSIDE": 500.0})
    b = _unit("B", 0, flows={"A": -200.0})
    result = compute_fair_allocation(_results(a, b), 10.0, outside_target_id="OUTSIDE")
    rows = _by_id(result.rows)

    assert rows["A"].neighbor_transfer_j == pytest.approx(-200.0)
    assert rows["B"].neighbor_transfer_j == pytest.approx(200.0)
    assert rows["A"].outside_adjustment_j == pytest.approx(-100.0)
    assert rows["B"].outside_adjustment_j == pytest.approx(100.0)
    assert rows["A"].raw_billable_j == pytest.approx(700.0)
    assert rows["B"].raw_billable_j == pytest.approx(300.0)
    assert rows["A"].final_cost == pytest.approx(7.0)
    assert rows["B"].final_cost == pytest.approx(3.0)


def test_fair_outside_subsidy_needs_two_payers() -> None:
    a = _unit("A", 1000, flows={"OUTSIDE": 500.0})
    result = compute_fair_allocation(_results(a), 10.0, outside_target_id="OUTSIDE")
    assert result.rows[0].outside_adjustment_j == 0.0
    assert result.rows[0].final_cost == pytest.approx(10.0)


def test_fair_negative_billable_is_floored() -> None:
    a = _unit("A", 0, flows={"B": 100.0})
    b = _unit("B", 50)
    result = compute_fair_allocation(_results(a, b), 10.0)
    rows = _by_id(result.rows)

    assert rows["A"].raw_billable_j == pytest.approx(-100.0)
    assert rows["A"].billable_j == 0.0
    assert rows["B"].final_cost == pytest.approx(10.0)
    assert result.meta.base_total_j == pytest.approx(50.0)
    assert result.meta.billable_total_j == pytest.approx(150.0)


def test_fair_shared_unit_split_by_tilt() -> None:
    shared = _unit("SHARED", 1000, flows={"A": 500.0})
    a = _unit("A", 1000)
    b = _unit("B", 1000)
    result = compute_fair_allocation(_results(shared, a, b), 100.0, shared_unit_id="SHARED")
    rows = _by_id(result.rows)

    assert set(rows) == {"A", "B"}
    assert rows["A"].shared_cost_j == pytest.approx(1000 * 1.25 / 2.25)
    assert rows["B"].shared_cost_j == pytest.approx(1000 * 1.0 / 2.25)
    assert sum(r.final_cost for r in result.rows) == pytest.approx(100.0)


def test_shared_weights_are_clamped() -> None:
    shared = _unit("SHARED", 10, flows={"A": 1e6})
    a = _unit("A", 0, flows={})
    b = _unit("B", 0, flows={"SHARED": 1e6})
    weights = shared_weights(shared, [a, b])
    assert weights["A"] == 1.5
    assert weights["B"] == 0.5


def test_fair_no_payers_is_empty() -> None:
    result = compute_fair_allocation(_results(_unit("SHARED", 100)), 100.0, shared_unit_id="SHARED")
    assert result.rows == []
    assert result.meta.base_total_j == 0.0
    assert result.meta.billable_total_j == 0.0


def test_fair_unknown_shared_id_keeps_all_payers() -> None:
    result = compute_fair_allocation(_results(_unit("A", 10), _unit("B", 30)), 40.0, shared_unit_id="nope")
    assert len(result.rows) == 2
    assert result.rows[0].id == "B"


def test_fair_is_idempotent() -> None:
    data = _results(_unit("A", 300, flows={"B": 20.0}), _unit("B", 100))
    first = compute_fair_allocation(data, 55.0)
    second = compute_fair_allocation(data, 55.0)
    assert first == second


# -----------------------------------------------------------------------------
# Practical policy
# -----------------------------------------------------------------------------


def test_position_coefficient() -> None:
    assert position_coefficient(5.0, 0.0) == 1.0
    assert position_coefficient(4.0, 4.0) == pytest.approx(1.0)
    # Exposed unit: losing 4x the average
    assert position_coefficient(16.0, 4.0) == pytest.approx(0.7)
    assert position_coefficient(4.0, 9.0) == pytest.approx(1.3)
    assert position_coefficient(0.0, 1.0) == 1.3


def test_practical_full_base_share_splits_by_area() -> None:
    a = _unit("A", 3000, area=30, flows={"OUTSIDE": 900.0})
    b = _unit("B", 1000, area=10)
    result = compute_practical_allocation(
        _results(a, b),
        100.0,
        outside_target_id="OUTSIDE",
        base_share_ratio=1.0,
    )
    rows = _by_id(result.rows)

    assert rows["A"].final_cost == pytest.approx(75.0)
    assert rows["B"].final_cost == pytest.approx(25.0)
    assert rows["A"].shared_cost_j == 0.0
    assert rows["B"].shared_cost_j == 0.0


def test_practical_bounds_lock_and_redistribute() -> None:
    a = _unit("A", 5000)
    b = _unit("B", 2000)
    c = _unit("C", 2000)
    result = compute_practical_allocation(_results(a, b, c), 9000.0, base_share_ratio=0.0)
    rows = _by_id(result.rows)

    # Average density is 300 J per cell; B and C would sit below 0.7x
    assert rows["B"].billable_j == pytest.approx(2100.0)
    assert rows["C"].billable_j == pytest.approx(2100.0)
    assert rows["A"].billable_j == pytest.approx(4800.0)
    assert sum(r.final_cost for r in result.rows) == pytest.approx(9000.0)
    assert sum(r.share_ratio for r in result.rows) == pytest.approx(1.0)


def test_practical_costs_stay_within_area_bounds() -> None:
    units = [
        _unit("A", 4000, area=12, flows={"OUTSIDE": 1200.0}),
        _unit("B", 3000, area=10, flows={"OUTSIDE": 300.0}),
        _unit("C", 2500, area=8),
        _unit("D", 2000, area=10, flows={"OUTSIDE": 500.0}),
    ]
    data = _results(*units)
    result = compute_practical_allocation(data, 500.0, outside_target_id="OUTSIDE", base_share_ratio=0.4)

    avg_density = data.total_house_heating_energy_j / sum(u.area_cells for u in units)
    for row in result.rows:
        density = (row.base_cost_j + row.shared_cost_j) / row.area_cells
        assert 0.7 * avg_density - 1e-6 <= density <= 2.0 * avg_density + 1e-6
    assert sum(r.billable_j for r in result.rows) == pytest.approx(data.total_house_heating_energy_j)
    assert sum(r.final_cost for r in result.rows) == pytest.approx(500.0)


def test_practical_zero_consumption_falls_back_to_area() -> None:
    data = _results(_unit("A", 0, area=30), _unit("B", 0, area=10), house_total=400.0)
    result = compute_practical_allocation(data, 40.0, base_share_ratio=0.0)
    rows = _by_id(result.rows)

    assert rows["A"].shared_cost_j == pytest.approx(300.0)
    assert rows["B"].shared_cost_j == pytest.approx(100.0)
    assert rows["A"].final_cost == pytest.approx(30.0)


def test_practical_excludes_shared_unit() -> None:
    data = _results(_unit("SHARED", 500, area=20), _unit("A", 500), _unit("B", 500))
    result = compute_practical_allocation(data, 30.0, shared_unit_id="SHARED", base_share_ratio=0.5)
    assert {r.id for r in result.rows} == {"A", "B"}
    assert sum(r.billable_j for r in result.rows) == pytest.approx(1500.0)
    assert sum(r.final_cost for r in result.rows) == pytest.approx(30.0)


def test_practical_no_payers_is_empty() -> None:
    result = compute_practical_allocation(_results(), 10.0)
    assert result.rows == []


def test_enforce_bounds_skips_empty_variable_pool() -> None:
    row = AllocationRow(id="A", name="A", area_cells=5, produced_j=0.0, comfort_score=None, base_cost_j=10.0)
    enforce_area_cost_bounds([row], 10.0, 0.0)
    assert row.base_cost_j == 10.0
    assert row.billable_j == 0.0


def test_non_finite_inputs_are_treated_as_zero() -> None:
    data = _results(_unit("A", math.nan), _unit("B", 100.0), house_total=math.inf)
    fair = compute_fair_allocation(data, 10.0)
    practical = compute_practical_allocation(data, 10.0)

    assert _by_id(fair.rows)["B"].final_cost == pytest.approx(10.0)
    assert all(math.isfinite(r.final_cost) for r in practical.rows)
    assert sum(r.final_cost for r in practical.rows) == pytest.approx(10.0)
