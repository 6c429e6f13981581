"""Analysis utilities - pure functions over exported simulation results."""

from analysis.allocation import (
    AllocationComputation,
    AllocationRow,
    compute_fair_allocation,
    compute_practical_allocation,
)

__all__ = [
    "AllocationComputation",
    "AllocationRow",
    "compute_fair_allocation",
    "compute_practical_allocation",
]
