"""Simulation module - grid heat conduction, emitter control and the heat-flow ledger."""

from simulation.config import DEFAULT as DEFAULT_SIM_CONFIG
from simulation.config import SimConfig
from simulation.engine import step_world, unit_average_temps
from simulation.profiling import ProfilingReport, StepProfiler
from simulation.results import HeatFlowRow, SimulationResults, UnitResult, UnitRuntimeRow
from simulation.runner import HeatSimulation
from simulation.topology import optimise_world
from simulation.world import WorldSetupError, create_world

__all__ = [
    "DEFAULT_SIM_CONFIG",
    "HeatFlowRow",
    "HeatSimulation",
    "ProfilingReport",
    "SimConfig",
    "SimulationResults",
    "StepProfiler",
    "UnitResult",
    "UnitRuntimeRow",
    "WorldSetupError",
    "create_world",
    "optimise_world",
    "step_world",
    "unit_average_temps",
]
