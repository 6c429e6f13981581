"""Tests for the step function: conduction, ledger, emitters and atomicity."""

import math

import numpy as np
import pytest

from core.models import OUTSIDE_TARGET_ID
from simulation.conduction import max_stable_dt, total_energy
from simulation.engine import step_world, unit_average_temps
from simulation.profiling import STEP_PHASES, StepProfiler
from simulation.topology import optimise_world
from simulation.world import assign_unit, create_world, paint_material

# Seconds of day inside unit A's home window (22:00-06:00): range 20-22
_NIGHT = 0.0


def _closed_world():
    """Air and brick only, uneven temperatures, no emitters."""
    rng = np.random.default_rng(7)
    world = create_world(6, 5, 20.0)
    for i in (1, 7, 13, 19, 25):
        paint_material(world, i, "brick")
    for i in range(6, 18):
        assign_unit(world, i, "A")
    for cell, t in zip(world.cells, rng.uniform(5.0, 35.0, world.size), strict=True):
        cell.temperature = float(t)
    return world


def _heater_world(temp: float):
    """3x3 unit A with a heater in the middle."""
    world = create_world(3, 3, temp, default_unit_id="A")
    paint_material(world, 4, "heater")
    return world


# -----------------------------------------------------------------------------
# Conduction
# -----------------------------------------------------------------------------


def test_energy_is_conserved_without_emitters() -> None:
    world = _closed_world()
    optimise_world(world)
    before = total_energy(world)

    for _ in range(20):
        step_world(world, 1.0, _NIGHT)

    assert total_energy(world) == pytest.approx(before, rel=1e-12)


def test_temperatures_relax_towards_each_other() -> None:
    world = _closed_world()
    optimise_world(world)
    spread = np.ptp(world._temp_by_cell)

    for _ in range(50):
        step_world(world, 1.0, _NIGHT)

    assert np.ptp(world._temp_by_cell) < spread
    assert [c.temperature for c in world.cells] == world._temp_by_cell.tolist()


def test_invalid_dt_is_treated_as_zero() -> None:
    world = _closed_world()
    optimise_world(world)
    before = world._temp_by_cell.copy()

    step_world(world, math.nan, _NIGHT)
    step_world(world, -5.0, _NIGHT)

    np.testing.assert_array_equal(world._temp_by_cell, before)


def test_max_stable_dt() -> None:
    world = create_world(4, 4, 20.0)
    optimise_world(world)
    assert 1.0 < max_stable_dt(world) < math.inf

    single = create_world(1, 1, 20.0)
    optimise_world(single)
    assert max_stable_dt(single) == math.inf


def test_unit_average_temps() -> None:
    world = create_world(3, 1, 0.0)
    assign_unit(world, 0, "A")
    assign_unit(world, 1, "A")
    world.cells[0].temperature = 10.0
    world.cells[1].temperature = 20.0
    optimise_world(world)

    avg = unit_average_temps(world, world._temp_by_cell)
    assert avg["A"] == pytest.approx(15.0)
    assert avg["B"] == 0.0


# -----------------------------------------------------------------------------
# Heat-flow ledger
# -----------------------------------------------------------------------------


def test_ledger_books_flow_between_units() -> None:
    world = create_world(2, 1, 20.0)
    assign_unit(world, 0, "A")
    assign_unit(world, 1, "B")
    world.cells[0].temperature = 30.0
    world.cells[1].temperature = 10.0
    optimise_world(world)
    g = float(world._edge_g_right[0, 0])

    step_world(world, 1.0, _NIGHT)

    a = world.units["A"].runtime
    b = world.units["B"].runtime
    assert a is not None and b is not None
    assert a.heat_flow_tick == pytest.approx({"B": g * 20.0})
    assert b.heat_flow_tick == pytest.approx({"A": -g * 20.0})
    first = a.heat_flow_tick["B"]

    step_world(world, 1.0, _NIGHT)
    assert 0 < a.heat_flow_tick["B"] < first
    assert a.heat_flow_total["B"] == pytest.approx(first + a.heat_flow_tick["B"])


def test_ledger_books_outside_through_wall() -> None:
    """outside | brick | A"""
    world = create_world(3, 1, 20.0)
    paint_material(world, 0, "outside")
    paint_material(world, 1, "brick")
    assign_unit(world, 2, "A")

    for _ in range(3):
        step_world(world, 1.0, _NIGHT)

    a = world.units["A"].runtime
    assert a is not None
    assert a.heat_flow_total[OUTSIDE_TARGET_ID] > 0


# -----------------------------------------------------------------------------
# Emitters
# -----------------------------------------------------------------------------


def test_cold_unit_runs_budgeted_heater() -> None:
    world = _heater_world(15.0)
    step_world(world, 1.0, _NIGHT)

    rt = world.units["A"].runtime
    assert rt is not None
    # Needs 6 K to reach the 21 °C midpoint; the budget closes 12% per step
    expected_w = 6.0 * rt.total_cap_j_per_k * 0.12
    assert expected_w < 1200
    assert rt.emitter_power_tick_w == pytest.approx(expected_w)
    assert rt.emitter_energy_total_j == pytest.approx(expected_w)
    assert world.cells[4].emitting
    assert world.cells[4].temperature > 15.0


def test_warm_unit_keeps_heater_off() -> None:
    world = _heater_world(25.0)
    step_world(world, 1.0, _NIGHT)

    rt = world.units["A"].runtime
    assert rt is not None
    assert rt.emitter_energy_total_j == 0.0
    assert not world.cells[4].emitting


def test_heater_holds_state_inside_band() -> None:
    world = _heater_world(21.0)
    world.cells[4].emitting = True
    step_world(world, 1.0, _NIGHT)

    assert world.cells[4].emitting
    rt = world.units["A"].runtime
    assert rt is not None
    # At the midpoint nothing is required, so nothing is drawn
    assert rt.emitter_energy_total_j == 0.0


def test_fixed_emitter_follows_material_temperature() -> None:
    world = create_world(3, 1, 20.0)
    paint_material(world, 0, "outside")

    step_world(world, 1.0, _NIGHT)
    assert world.cells[0].temperature == 0.0
    assert world.cells[0].emitting

    world.materials["outside"].emit_temp = -5.0
    step_world(world, 1.0, _NIGHT)
    assert world.cells[0].temperature == -5.0


def test_comfort_scores_accumulate() -> None:
    world = _heater_world(21.0)
    step_world(world, 1.0, _NIGHT)
    step_world(world, 1.0, 12 * 3600.0)

    rt = world.units["A"].runtime
    assert rt is not None
    assert rt.comfort_score_samples == 2
    # Away range at noon is 16-18, so the second sample is below 100
    assert rt.comfort_tick_score < 100.0
    assert rt.comfort_avg_score == pytest.approx((100.0 + rt.comfort_tick_score) / 2)


# -----------------------------------------------------------------------------
# Atomicity and profiling
# -----------------------------------------------------------------------------


def test_failed_step_leaves_world_unchanged(monkeypatch: pytest.MonkeyPatch) -> None:
    world = _heater_world(15.0)
    world.cells[0].temperature = 30.0
    step_world(world, 1.0, _NIGHT)

    rt = world.units["A"].runtime
    assert rt is not None
    temps = [c.temperature for c in world.cells]
    emitting = [c.emitting for c in world.cells]
    energy = rt.emitter_energy_total_j
    samples = rt.comfort_score_samples

    def boom(*args: object, **kwargs: object) -> None:
        raise RuntimeError("emitter failure")

    monkeypatch.setattr("simulation.engine.apply_unit_emitters", boom)
    with pytest.raises(RuntimeError):
        step_world(world, 1.0, _NIGHT)

    assert [c.temperature for c in world.cells] == temps
    assert [c.emitting for c in world.cells] == emitting
    assert rt.emitter_energy_total_j == energy
    assert rt.comfort_score_samples == samples


def test_profiler_reports_every_window() -> None:
    world = _heater_world(15.0)
    profiler = StepProfiler(report_every_steps=2, log_reports=False)

    step_world(world, 1.0, _NIGHT, profiler=profiler)
    assert profiler.last_report is None
    step_world(world, 1.0, _NIGHT, profiler=profiler)

    report = profiler.last_report
    assert report is not None
    assert report.steps == 2
    assert set(report.phases) == set(STEP_PHASES)
    assert report.max_emitter_requests == 1
    assert report.total_ms >= 0
    assert "steps=2" in report.summary()

    profiler.reset()
    assert profiler.last_report is None
