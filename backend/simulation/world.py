"""Grid construction and structural editing.

Every structural mutation goes through a function here and marks the
derived caches stale; ``simulation.topology.optimise_world`` rebuilds them
lazily at the start of the next step.
"""

import logging
from collections.abc import Callable

from core.models import SHARED_UNIT_ID, Cell, Material, Unit, World
from data.defaults import default_materials, default_units
from simulation.config import DEFAULT, SimConfig

logger = logging.getLogger(__name__)


class WorldSetupError(ValueError):
    """Raised when a grid cannot be built from the supplied palettes."""


def xy_to_index(x: int, y: int, width: int) -> int:
    return y * width + x


def index_to_xy(index: int, width: int) -> tuple[int, int]:
    return index % width, index // width


def in_bounds(x: int, y: int, width: int, height: int) -> bool:
    return 0 <= x < width and 0 <= y < height


def create_world(
    width: int,
    height: int,
    init_temp: float,
    materials: dict[str, Material] | None = None,
    units: dict[str, Unit] | None = None,
    default_material_id: str = "air",
    default_unit_id: str | None = None,
    config: SimConfig = DEFAULT,
) -> World:
    """Allocate a grid filled with one material and (optionally) one unit.

    Raises:
        WorldSetupError: default material or non-null default unit missing
            from the palettes, or the shared unit missing from ``units``.
    """
    materials = materials if materials is not None else default_materials()
    units = units if units is not None else default_units()

    if default_material_id not in materials:
        raise WorldSetupError(f"Missing default material: {default_material_id}")
    if default_unit_id is not None and default_unit_id not in units:
        raise WorldSetupError(f"Missing default unit: {default_unit_id}")
    if SHARED_UNIT_ID not in units:
        raise WorldSetupError(f"Missing shared unit: {SHARED_UNIT_ID}")
    if width <= 0 or height <= 0:
        raise WorldSetupError(f"Invalid grid size: {width}x{height}")

    cells = [
        Cell(temperature=init_temp, material_id=default_material_id, unit_id=default_unit_id)
        for _ in range(width * height)
    ]
    logger.debug("Created %dx%d world (%d materials, %d units)", width, height, len(materials), len(units))
    return World(
        width=width,
        height=height,
        cells=cells,
        materials=materials,
        units=units,
        cell_volume_m3=config.cell_volume_m3,
        edge_area_m2=config.edge_area_m2,
        edge_length_m=config.edge_length_m,
    )


def mark_stale(world: World) -> None:
    """Flag derived caches for rebuild before the next step."""
    world.stale = True


# ---------------------------------------------------------------------------
# Per-cell edits
# ---------------------------------------------------------------------------


def _valid_index(world: World, index: int) -> bool:
    return 0 <= index < world.size


def paint_material(world: World, index: int, material_id: str) -> bool:
    """Set one cell's material. Returns True if anything changed."""
    if not _valid_index(world, index) or material_id not in world.materials:
        return False
    cell = world.cells[index]
    if cell.material_id == material_id:
        return False
    cell.material_id = material_id
    mark_stale(world)
    return True


def assign_unit(world: World, index: int, unit_id: str | None) -> bool:
    """Set (or clear with None) one cell's owning unit."""
    if not _valid_index(world, index) or (unit_id is not None and unit_id not in world.units):
        return False
    cell = world.cells[index]
    if cell.unit_id == unit_id:
        return False
    cell.unit_id = unit_id
    mark_stale(world)
    return True


def _flood(world: World, start: int, matches: Callable[[Cell], bool], apply: Callable[[Cell], None]) -> int:
    """4-connected flood fill from ``start`` over cells accepted by ``matches``."""
    w, h = world.width, world.height
    visited = bytearray(w * h)
    stack = [start]
    changed = 0

    while stack:
        n = stack.pop()
        if visited[n]:
            continue
        visited[n] = 1

        cell = world.cells[n]
        if not matches(cell):
            continue
        apply(cell)
        changed += 1

        x, y = index_to_xy(n, w)
        if x > 0:
            stack.append(n - 1)
        if x < w - 1:
            stack.append(n + 1)
        if y > 0:
            stack.append(n - w)
        if y < h - 1:
            stack.append(n + w)

    return changed


def flood_fill_material(world: World, start: int, material_id: str) -> int:
    """Replace the connected region sharing the seed cell's material."""
    if not _valid_index(world, start) or material_id not in world.materials:
        return 0
    from_id = world.cells[start].material_id
    if from_id == material_id:
        return 0

    def _apply(cell: Cell) -> None:
        cell.material_id = material_id

    changed = _flood(world, start, lambda c: c.material_id == from_id, _apply)
    if changed:
        mark_stale(world)
    return changed


def flood_fill_unit(world: World, start: int, unit_id: str | None) -> int:
    """Assign the connected region sharing the seed's material and owner."""
    if not _valid_index(world, start) or (unit_id is not None and unit_id not in world.units):
        return 0
    seed = world.cells[start]
    from_material, from_unit = seed.material_id, seed.unit_id
    if from_unit == unit_id:
        return 0

    def _apply(cell: Cell) -> None:
        cell.unit_id = unit_id

    changed = _flood(
        world,
        start,
        lambda c: c.material_id == from_material and c.unit_id == from_unit,
        _apply,
    )
    if changed:
        mark_stale(world)
    return changed


# ---------------------------------------------------------------------------
# Palette edits
# ---------------------------------------------------------------------------


def upsert_material(world: World, material: Material) -> None:
    world.materials[material.id] = material
    mark_stale(world)


def delete_material(world: World, material_id: str, fallback_id: str = "air") -> bool:
    """Remove a material, repainting its cells with ``fallback_id``."""
    if material_id not in world.materials:
        return False
    if fallback_id not in world.materials or fallback_id == material_id:
        raise WorldSetupError(f"Missing fallback material: {fallback_id}")

    del world.materials[material_id]
    for cell in world.cells:
        if cell.material_id == material_id:
            cell.material_id = fallback_id
    mark_stale(world)
    return True


def add_unit(world: World, unit: Unit) -> bool:
    if unit.id in world.units or unit.id == SHARED_UNIT_ID:
        return False
    world.units[unit.id] = unit
    mark_stale(world)
    return True


def update_unit(world: World, unit: Unit) -> bool:
    if unit.id not in world.units:
        return False
    world.units[unit.id] = unit
    mark_stale(world)
    return True


def remove_unit(world: World, unit_id: str) -> bool:
    """Remove a unit; its cells become unowned. The shared unit stays."""
    if unit_id == SHARED_UNIT_ID or unit_id not in world.units:
        return False
    del world.units[unit_id]
    for cell in world.cells:
        if cell.unit_id == unit_id:
            cell.unit_id = None
    mark_stale(world)
    return True
