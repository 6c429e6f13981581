"""Built-in material and unit presets used for new simulations."""

from core.models import SHARED_UNIT_ID, Material, OwnedParams, SharedParams, TempRange, Unit


def default_units() -> dict[str, Unit]:
    """Shared space plus two apartments with overlapping home schedules."""
    units = [
        Unit(
            id=SHARED_UNIT_ID,
            name="Shared space",
            color="#9E9E9E",
            params=SharedParams(comfort_range=TempRange(14, 22)),
        ),
        Unit(
            id="A",
            name="Unit A",
            color="#8E44AD",
            params=OwnedParams(
                home_from_min=22 * 60,
                home_to_min=6 * 60,
                home=TempRange(20, 22),
                away=TempRange(16, 18),
            ),
        ),
        Unit(
            id="B",
            name="Unit B",
            color="#27AE60",
            params=OwnedParams(
                home_from_min=16 * 60,
                home_to_min=8 * 60,
                home=TempRange(20, 22),
                away=TempRange(15, 17),
            ),
        ),
    ]
    return {u.id: u for u in units}


def default_materials() -> dict[str, Material]:
    """Material palette in SI units."""
    materials = [
        # Effective conductivity for a coarse grid (includes unresolved mixing)
        Material(id="air", name="Air", rho=1.225, cp=1005, conductivity=2.5, color="#2D3A4A"),
        Material(id="brick", name="Brick wall", rho=1800, cp=840, conductivity=0.72, color="#7B4E2B"),
        Material(id="concrete", name="Concrete", rho=2300, cp=880, conductivity=1.7, color="#6E7076"),
        Material(id="eps", name="Insulation (EPS)", rho=20, cp=1300, conductivity=0.035, color="#D8D3A8"),
        Material(id="window", name="Window", rho=2500, cp=750, conductivity=1.0, color="#7FB3D5"),
        # Device-like effective thermal mass, not full-cell steel
        Material(
            id="heater",
            name="Heater",
            rho=40,
            cp=500,
            conductivity=3.0,
            color="#C0392B",
            emit_temp=55,
            emit_power_w=1200,
        ),
        Material(
            id="ac",
            name="AC",
            rho=35,
            cp=900,
            conductivity=3.0,
            color="#1F7AE0",
            emit_temp=16,
            emit_power_w=900,
        ),
        Material(
            id="outside",
            name="Outside",
            rho=1e9,
            cp=1000,
            conductivity=0.3,
            color="#0B1B2B",
            emit_temp=0,
            emit_power_w=0,
        ),
    ]
    return {m.id: m for m in materials}
