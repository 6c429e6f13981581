"""Topology cache builder.

Derives everything a step needs from the authoritative cells and palettes:
per-cell capacity, per-edge conductance, the temperature mirror, unit
membership (arena + index), emitter index lists, the directional boundary
target map, and the ledger edge tables used to attribute conducted energy.

Capacity:     C = max(eps, rho * cp * V_cell)                 [J/K]
Conductance:  G = harmonic(λ_a, λ_b) * A_edge / L_edge          [W/K]
"""

import logging
import math

import numpy as np

from core.models import (
    DIR_DOWN,
    DIR_LEFT,
    DIR_RIGHT,
    DIR_UP,
    DIR_VECTORS,
    NO_TARGET,
    OUTSIDE,
    OUTSIDE_TARGET_ID,
    BoundaryTarget,
    Material,
    UnitRuntime,
    UnitTarget,
    World,
    target_key,
)
from simulation.config import DEFAULT, SimConfig
from simulation.world import in_bounds

logger = logging.getLogger(__name__)


def cell_capacity(material: Material, volume_m3: float, floor: float = DEFAULT.capacity_floor_j_per_k) -> float:
    """Single-cell heat capacity [J/K], floored to stay strictly positive."""
    return max(floor, material.rho * material.cp * volume_m3)


def harmonic_mean(a: float, b: float, eps: float = DEFAULT.harmonic_mean_eps) -> float:
    """Interface conductivity between two materials."""
    return (2 * a * b) / (a + b + eps)


def edge_conductance(a: Material, b: Material, edge_area_m2: float, edge_length_m: float) -> float:
    """Conductance between two adjacent cells [W/K]."""
    return harmonic_mean(a.conductivity, b.conductivity) * (edge_area_m2 / edge_length_m)


def resolve_boundary_target(
    world: World,
    cell_index: int,
    unit_id: str,
    dx: int,
    dy: int,
    outside_material_id: str = DEFAULT.outside_material_id,
) -> BoundaryTarget:
    """Walk outward from a cell until the ray meets something that owns heat.

    - first step leaves the grid                 -> outside
    - ray re-enters ``unit_id``                  -> no target
    - ray meets another unit                     -> that unit
    - ray meets an unowned outside-material cell -> outside
    - unowned infrastructure                     -> keep walking
    - ray leaves the grid after infrastructure   -> no target
    """
    w, h = world.width, world.height
    x = cell_index % w + dx
    y = cell_index // w + dy

    if not in_bounds(x, y, w, h):
        return OUTSIDE

    while in_bounds(x, y, w, h):
        cell = world.cells[y * w + x]
        if cell.unit_id == unit_id:
            return NO_TARGET
        if cell.unit_id is not None:
            return UnitTarget(cell.unit_id)
        if cell.material_id == outside_material_id:
            return OUTSIDE
        x += dx
        y += dy

    return NO_TARGET


def optimise_world(world: World, config: SimConfig = DEFAULT) -> None:
    """Rebuild all derived caches if the world is stale. Idempotent."""
    if not world.stale:
        return

    _rebuild_cell_caches(world, config)
    _rebuild_unit_topology(world, config)
    _rebuild_boundary_targets(world, config)
    _rebuild_conduction_caches(world, config)
    _rebuild_ledger_tables(world)
    world.stale = False

    logger.debug(
        "Rebuilt caches: %d cells, %d units, %d unit emitters, %d fixed emitters, %d ledger entries",
        world.size,
        len(world.units),
        len(world._unit_emitter_cells),
        len(world._fixed_emitter_cells),
        len(world._ledger_edge),
    )


def _rebuild_cell_caches(world: World, config: SimConfig) -> None:
    """Temperature mirror, capacity, unit index per cell, emitter lists."""
    n = world.size
    world._unit_keys = list(world.units)
    unit_index = {unit_id: i for i, unit_id in enumerate(world._unit_keys)}

    temps = np.empty(n, dtype=np.float64)
    caps = np.empty(n, dtype=np.float64)
    unit_by_cell = np.full(n, -1, dtype=np.int64)
    unit_emitters: list[int] = []
    fixed_emitters: list[int] = []

    for i, cell in enumerate(world.cells):
        material = world.materials[cell.material_id]
        temps[i] = cell.temperature
        caps[i] = cell_capacity(material, world.cell_volume_m3, config.capacity_floor_j_per_k)
        if cell.unit_id is not None:
            unit_by_cell[i] = unit_index.get(cell.unit_id, -1)

        if material.emit_temp is None or not math.isfinite(material.emit_temp):
            continue
        if cell.unit_id is None or cell.unit_id not in world.units:
            fixed_emitters.append(i)
        else:
            unit_emitters.append(i)

    world._temp_by_cell = temps
    world._cell_cap_j_per_k = caps
    world._unit_index_by_cell = unit_by_cell
    world._unit_emitter_cells = unit_emitters
    world._fixed_emitter_cells = fixed_emitters


def _rebuild_unit_topology(world: World, config: SimConfig) -> None:
    """Fresh runtimes with owned cells, heater cells and non-heater capacity."""
    for unit in world.units.values():
        unit.runtime = UnitRuntime()

    for i, cell in enumerate(world.cells):
        if cell.unit_id is None:
            continue
        unit = world.units.get(cell.unit_id)
        if unit is None or unit.runtime is None:
            continue

        rt = unit.runtime
        rt.all_cells.append(i)
        material = world.materials[cell.material_id]
        if material.is_emitter:
            rt.heater_cells.append(i)
        else:
            rt.total_cap_j_per_k += cell_capacity(material, world.cell_volume_m3, config.capacity_floor_j_per_k)


def _rebuild_boundary_targets(world: World, config: SimConfig) -> None:
    by_dir: list[BoundaryTarget] = [NO_TARGET] * (world.size * 4)

    for i, cell in enumerate(world.cells):
        if cell.unit_id is None:
            continue
        unit = world.units.get(cell.unit_id)
        if unit is None or unit.runtime is None:
            continue

        targets = tuple(
            resolve_boundary_target(world, i, cell.unit_id, dx, dy, config.outside_material_id)
            for dx, dy in DIR_VECTORS
        )
        by_dir[i * 4 : i * 4 + 4] = targets
        unit.runtime.boundary_targets_by_cell[i] = targets

    world._boundary_target_by_dir = by_dir


def _rebuild_conduction_caches(world: World, config: SimConfig) -> None:
    """Right/down edge conductances via vectorised harmonic means."""
    w, h = world.width, world.height
    lam = np.array(
        [max(0.0, world.materials[c.material_id].conductivity) for c in world.cells],
        dtype=np.float64,
    ).reshape(h, w)
    shape_factor = world.edge_area_m2 / world.edge_length_m
    eps = config.harmonic_mean_eps

    left, right = lam[:, :-1], lam[:, 1:]
    world._edge_g_right = (2 * left * right) / (left + right + eps) * shape_factor

    up, down = lam[:-1, :], lam[1:, :]
    world._edge_g_down = (2 * up * down) / (up + down + eps) * shape_factor


def _rebuild_ledger_tables(world: World) -> None:
    """Map each edge side that belongs to a unit onto (unit, target, sign).

    Flat edge index: horizontal edges first in row-major (h, w-1) order,
    then vertical edges in row-major (h-1, w) order. The source side of an
    edge (left / upper cell) books +q, the other side -q.
    """
    w, h = world.width, world.height
    world._target_keys = [*world._unit_keys, OUTSIDE_TARGET_ID]
    target_index = {key: i for i, key in enumerate(world._target_keys)}
    unit_by_cell = world._unit_index_by_cell
    by_dir = world._boundary_target_by_dir

    edges: list[int] = []
    units: list[int] = []
    targets: list[int] = []
    signs: list[float] = []

    def _book(edge: int, cell: int, direction: int, sign: float) -> None:
        unit = int(unit_by_cell[cell])
        if unit < 0:
            return
        key = target_key(by_dir[cell * 4 + direction])
        if key is None or key not in target_index:
            return
        edges.append(edge)
        units.append(unit)
        targets.append(target_index[key])
        signs.append(sign)

    for y in range(h):
        for x in range(w - 1):
            edge = y * (w - 1) + x
            i = y * w + x
            _book(edge, i, DIR_RIGHT, 1.0)
            _book(edge, i + 1, DIR_LEFT, -1.0)

    offset = h * (w - 1)
    for y in range(h - 1):
        for x in range(w):
            edge = offset + y * w + x
            i = y * w + x
            _book(edge, i, DIR_DOWN, 1.0)
            _book(edge, i + w, DIR_UP, -1.0)

    world._ledger_edge = np.asarray(edges, dtype=np.int64)
    world._ledger_unit = np.asarray(units, dtype=np.int64)
    world._ledger_target = np.asarray(targets, dtype=np.int64)
    world._ledger_sign = np.asarray(signs, dtype=np.float64)
