"""Sample two-apartment floor plan for new simulations."""

from core.models import SHARED_UNIT_ID, World
from simulation.world import assign_unit, paint_material, xy_to_index


def _fill_rect(world: World, x0: int, y0: int, x1: int, y1: int, material_id: str, unit_id: str | None = None) -> None:
    """Paint an inclusive rectangle, clipped to the grid."""
    for y in range(max(0, y0), min(world.height - 1, y1) + 1):
        for x in range(max(0, x0), min(world.width - 1, x1) + 1):
            i = xy_to_index(x, y, world.width)
            paint_material(world, i, material_id)
            assign_unit(world, i, unit_id)


def paint_sample_layout(world: World) -> None:
    """Two apartments (A left, B right) above a shared corridor.

    The grid is ringed by outside cells and a brick envelope. Each unit
    gets a window in the north wall with a heater below it and a door
    into the corridor. Works for any grid at least 10x10.
    """
    w, h = world.width, world.height
    left, right, top, bottom = 2, w - 3, 2, h - 3

    # Outside ring, then brick envelope, then an empty interior
    _fill_rect(world, 0, 0, w - 1, h - 1, "outside")
    _fill_rect(world, 1, 1, w - 2, h - 2, "brick")
    _fill_rect(world, left, top, right, bottom, "air")

    corridor_rows = max(1, (bottom - top + 1) // 5)
    corridor_wall_y = bottom - corridor_rows
    mid_x = w // 2

    _fill_rect(world, left, corridor_wall_y, right, corridor_wall_y, "brick")
    _fill_rect(world, mid_x, top, mid_x, corridor_wall_y - 1, "brick")

    _fill_rect(world, left, top, mid_x - 1, corridor_wall_y - 1, "air", "A")
    _fill_rect(world, mid_x + 1, top, right, corridor_wall_y - 1, "air", "B")
    _fill_rect(world, left, corridor_wall_y + 1, right, bottom, "air", SHARED_UNIT_ID)

    # Doors
    _fill_rect(world, left + 1, corridor_wall_y, left + 1, corridor_wall_y, "air", SHARED_UNIT_ID)
    _fill_rect(world, right - 1, corridor_wall_y, right - 1, corridor_wall_y, "air", SHARED_UNIT_ID)

    for unit_id, x in (("A", (left + mid_x - 1) // 2), ("B", (mid_x + 1 + right) // 2)):
        _fill_rect(world, x, 1, x, 1, "window")
        _fill_rect(world, x, top, x, top, "heater", unit_id)
