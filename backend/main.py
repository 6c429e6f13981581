"""FastAPI entry point - thin layer over the domain."""

import logging
import threading

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from analysis.allocation import AllocationComputation, compute_fair_allocation, compute_practical_allocation
from core.models import OUTSIDE_TARGET_ID, SHARED_UNIT_ID
from data.sample_layout import paint_sample_layout
from simulation import HeatSimulation, SimulationResults, StepProfiler, UnitRuntimeRow

logging.basicConfig(level=logging.WARNING, format="%(name)s | %(message)s")
logging.getLogger("simulation.runner").setLevel(logging.INFO)
logging.getLogger("simulation.profiling").setLevel(logging.INFO)
logging.getLogger("analysis.allocation").setLevel(logging.INFO)

app = FastAPI(title="Heat Grid API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

sim = HeatSimulation(profiler=StepProfiler())
sim.setup(paint_sample_layout)
# Handlers run on the threadpool; every read or write of `sim` holds this
_sim_lock = threading.Lock()

_NO_RESULTS = {"status": "no_results", "message": "Run the simulation for at least one tick first"}


class SimulationStatus(BaseModel):
    width: int
    height: int
    tick: int
    sim_time_s: float
    seconds_of_day: float
    day_index: int
    locked: bool
    ended: bool


class StepRequest(BaseModel):
    steps: int = Field(default=1, ge=1, le=100_000)


class AllocationRequest(BaseModel):
    total_cost: float
    shared_unit_id: str | None = SHARED_UNIT_ID
    outside_target_id: str | None = OUTSIDE_TARGET_ID
    base_share_ratio: float = 0.3
    # Defaults to the live simulation's export
    results: SimulationResults | None = None


def _status() -> SimulationStatus:
    world = sim.world
    return SimulationStatus(
        width=world.width if world else 0,
        height=world.height if world else 0,
        tick=sim.tick,
        sim_time_s=sim.sim_time_s,
        seconds_of_day=sim.seconds_of_day,
        day_index=sim.day_index,
        locked=sim.locked,
        ended=sim.ended,
    )


@app.get("/simulation/status")
def get_simulation_status() -> SimulationStatus:
    with _sim_lock:
        return _status()


@app.post("/simulation/setup")
def setup_simulation() -> SimulationStatus:
    """Start over from the sample floor plan."""
    with _sim_lock:
        sim.setup(paint_sample_layout)
        if sim.profiler is not None:
            sim.profiler.reset()
        return _status()


@app.post("/simulation/step")
def step_simulation(request: StepRequest) -> SimulationStatus:
    with _sim_lock:
        sim.run(request.steps)
        return _status()


@app.get("/simulation/units")
def get_simulation_units() -> list[UnitRuntimeRow]:
    with _sim_lock:
        return sim.runtime_rows()


@app.get("/simulation/results")
def get_simulation_results(name: str = "") -> SimulationResults | dict[str, str]:
    with _sim_lock:
        results = sim.export_results(name)
    if results is None:
        return _NO_RESULTS
    return results


def _allocation_input(request: AllocationRequest) -> SimulationResults | None:
    if request.results is not None:
        return request.results
    with _sim_lock:
        return sim.export_results()


@app.post("/allocation/fair")
def allocate_fair(request: AllocationRequest) -> AllocationComputation | dict[str, str]:
    results = _allocation_input(request)
    if results is None:
        return _NO_RESULTS
    return compute_fair_allocation(
        results,
        request.total_cost,
        shared_unit_id=request.shared_unit_id,
        outside_target_id=request.outside_target_id,
    )


@app.post("/allocation/practical")
def allocate_practical(request: AllocationRequest) -> AllocationComputation | dict[str, str]:
    results = _allocation_input(request)
    if results is None:
        return _NO_RESULTS
    return compute_practical_allocation(
        results,
        request.total_cost,
        shared_unit_id=request.shared_unit_id,
        outside_target_id=request.outside_target_id,
        base_share_ratio=request.base_share_ratio,
    )
