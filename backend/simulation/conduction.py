"""Explicit (forward Euler) conduction over the cached edge conductances.

For every adjacent pair (i, j), the energy moved in one step is

    q = G_ij * (T_i - T_j) * dt

and is booked as -q on i and +q on j. Temperatures are updated once after
all edges have been processed, so the result does not depend on edge order.
Stability is the caller's choice of ``dt``; see ``max_stable_dt``.
"""

import numpy as np
from numpy.typing import NDArray

from core.models import World


def diffuse(
    world: World,
    temps: NDArray[np.float64],
    dt: float,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Accumulate one step of conducted energy.

    Args:
        world: Optimised world (edge conductances must be current)
        temps: Flat temperature vector (not modified)
        dt: Time step [s]

    Returns:
        (delta_q, edge_flows): energy change per cell [J] and the signed
        energy per edge [J] in the flat edge order used by the ledger
        (horizontal edges first, then vertical). Positive flow means energy
        moved from the left/upper cell to the right/lower cell.
    """
    w, h = world.width, world.height
    grid = temps.reshape(h, w)

    q_right = world._edge_g_right * (grid[:, :-1] - grid[:, 1:]) * dt
    q_down = world._edge_g_down * (grid[:-1, :] - grid[1:, :]) * dt

    delta_q = np.zeros((h, w), dtype=np.float64)
    delta_q[:, :-1] -= q_right
    delta_q[:, 1:] += q_right
    delta_q[:-1, :] -= q_down
    delta_q[1:, :] += q_down

    edge_flows = np.concatenate((q_right.ravel(), q_down.ravel()))
    return delta_q.ravel(), edge_flows


def apply_energy(
    temps: NDArray[np.float64],
    delta_q: NDArray[np.float64],
    capacity: NDArray[np.float64],
    floor: float = 1e-9,
) -> NDArray[np.float64]:
    """Return ``temps + delta_q / capacity`` with capacity floored."""
    return temps + delta_q / np.maximum(capacity, floor)


def total_energy(world: World, temps: NDArray[np.float64] | None = None) -> float:
    """Capacity-weighted energy Σ C_i·T_i [J] (relative to 0 °C)."""
    t = world._temp_by_cell if temps is None else temps
    return float(np.dot(world._cell_cap_j_per_k, t))


def max_stable_dt(world: World) -> float:
    """Largest dt for which the explicit scheme stays stable.

    A cell is stable while dt * ΣG_neighbours / C <= 1. Returns inf for a
    grid without conducting edges.
    """
    w, h = world.width, world.height
    g_sum = np.zeros((h, w), dtype=np.float64)
    g_sum[:, :-1] += world._edge_g_right
    g_sum[:, 1:] += world._edge_g_right
    g_sum[:-1, :] += world._edge_g_down
    g_sum[1:, :] += world._edge_g_down

    ratio = g_sum.ravel() / world._cell_cap_j_per_k
    peak = float(ratio.max()) if ratio.size else 0.0
    if peak <= 0:
        return float("inf")
    return 1.0 / peak
