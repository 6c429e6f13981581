"""Emitter control: hysteresis switching and per-unit power budgeting.

Unit-owned emitters (heaters, AC) run in two phases each step:

1. every switched-on emitter requests raw power = rated power * factor,
   where the factor grows with how far the unit is outside its range;
2. each unit's requests are scaled so together they deliver no more than
   the energy needed to close a fraction of the error to the range
   midpoint, which keeps many co-owned emitters from overshooting.

Emitters without a (resolvable) owner are infrastructure boundary
conditions: they pin their cell to the drive temperature every step.
"""

import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from core.models import TempRange, World

_BAND_EPS = 1e-9
_POWER_EPS = 1e-9


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def should_emitter_be_on(emit_temp: float, avg_temp: float, comfort: TempRange, was_on: bool) -> bool:
    """On/off decision with hysteresis inside the comfort band.

    Heater-like (drive >= max): on below min, off above max, else hold.
    Cooler-like (drive <= min): on above max, off below min, else hold.
    Neutral (drive inside range): on whenever outside the range.
    """
    if emit_temp >= comfort.max:
        if avg_temp < comfort.min:
            return True
        if avg_temp > comfort.max:
            return False
        return was_on

    if emit_temp <= comfort.min:
        if avg_temp > comfort.max:
            return True
        if avg_temp < comfort.min:
            return False
        return was_on

    return avg_temp < comfort.min or avg_temp > comfort.max


def emitter_power_factor(emit_temp: float, avg_temp: float, comfort: TempRange) -> float:
    """Normalised power in [0, 1] from the unit's comfort error."""
    band = max(_BAND_EPS, comfort.width)

    if emit_temp >= comfort.max:
        if avg_temp <= comfort.min:
            return 1.0
        if avg_temp >= comfort.max:
            return 0.0
        return _clamp((comfort.max - avg_temp) / band, 0.0, 1.0)

    if emit_temp <= comfort.min:
        if avg_temp >= comfort.max:
            return 1.0
        if avg_temp <= comfort.min:
            return 0.0
        return _clamp((avg_temp - comfort.min) / band, 0.0, 1.0)

    if avg_temp < comfort.min:
        return _clamp((comfort.min - avg_temp) / band, 0.0, 1.0)
    if avg_temp > comfort.max:
        return _clamp((avg_temp - comfort.max) / band, 0.0, 1.0)
    return 0.0


@dataclass
class EmitterRequest:
    unit_id: str
    cell_index: int
    direction: int  # +1 heating, -1 cooling
    raw_power_w: float


@dataclass
class PowerScale:
    heat: float = 0.0
    cool: float = 0.0


def update_emitter_states(
    world: World,
    avg_temps: dict[str, float],
    ranges: dict[str, TempRange],
    states: dict[int, bool],
) -> dict[int, bool]:
    """Next on/off state for every unit-controlled emitter cell."""
    next_states: dict[int, bool] = {}
    for i in world._unit_emitter_cells:
        cell = world.cells[i]
        material = world.materials[cell.material_id]
        was_on = states.get(i, cell.emitting)
        if cell.unit_id is None or material.emit_temp is None or cell.unit_id not in ranges:
            next_states[i] = was_on
            continue
        next_states[i] = should_emitter_be_on(
            material.emit_temp, avg_temps[cell.unit_id], ranges[cell.unit_id], was_on
        )
    return next_states


def build_emitter_requests(
    world: World,
    temps: NDArray[np.float64],
    states: dict[int, bool],
    avg_temps: dict[str, float],
    ranges: dict[str, TempRange],
) -> list[EmitterRequest]:
    """Raw power requests from switched-on unit emitters."""
    requests: list[EmitterRequest] = []
    for i in world._unit_emitter_cells:
        if not states.get(i, False):
            continue
        cell = world.cells[i]
        unit_id = cell.unit_id
        if unit_id is None or unit_id not in ranges:
            continue
        material = world.materials[cell.material_id]
        if material.emit_temp is None:
            continue

        emit_power_w = max(0.0, material.emit_power_w or 0.0)
        if emit_power_w <= 0:
            continue

        direction = float(np.sign(material.emit_temp - temps[i]))
        if direction == 0 or math.isnan(direction):
            continue

        raw_power_w = emit_power_w * emitter_power_factor(material.emit_temp, avg_temps[unit_id], ranges[unit_id])
        if raw_power_w <= 0:
            continue

        requests.append(
            EmitterRequest(
                unit_id=unit_id,
                cell_index=i,
                direction=1 if direction > 0 else -1,
                raw_power_w=raw_power_w,
            )
        )
    return requests


def compute_unit_power_scales(
    world: World,
    requests: list[EmitterRequest],
    avg_temps: dict[str, float],
    ranges: dict[str, TempRange],
    dt: float,
    gain: float,
) -> dict[str, PowerScale]:
    """Per-unit heat/cool scale so emitters only deliver what is needed.

    required = |midpoint - avg| * C_unit * gain / dt
    scale    = clamp(required / raw_requested, 0, 1) in the error direction
    """
    raw: dict[str, PowerScale] = {}
    for req in requests:
        totals = raw.setdefault(req.unit_id, PowerScale())
        if req.direction > 0:
            totals.heat += req.raw_power_w
        else:
            totals.cool += req.raw_power_w

    safe_dt = max(1e-9, dt)
    scales: dict[str, PowerScale] = {}
    for unit_id, totals in raw.items():
        unit = world.units.get(unit_id)
        if unit is None or unit.runtime is None:
            continue
        if totals.heat <= 0 and totals.cool <= 0:
            continue

        err = ranges[unit_id].midpoint - avg_temps[unit_id]
        cap = max(1e-9, unit.runtime.total_cap_j_per_k)
        required_w = abs(err) * cap * gain / safe_dt

        heat = _clamp(required_w / max(totals.heat, _POWER_EPS), 0.0, 1.0) if err > 0 and totals.heat > 0 else 0.0
        cool = _clamp(required_w / max(totals.cool, _POWER_EPS), 0.0, 1.0) if err < 0 and totals.cool > 0 else 0.0
        scales[unit_id] = PowerScale(heat=heat, cool=cool)
    return scales


def apply_unit_emitters(
    world: World,
    temps: NDArray[np.float64],
    requests: list[EmitterRequest],
    scales: dict[str, PowerScale],
    dt: float,
) -> dict[str, float]:
    """Inject budgeted emitter energy into ``temps`` in place.

    Returns the effective electrical power drawn per unit [W].
    """
    caps = world._cell_cap_j_per_k
    power_by_unit: dict[str, float] = {}
    for req in requests:
        scale = scales.get(req.unit_id)
        if scale is None:
            continue
        unit_scale = scale.heat if req.direction > 0 else scale.cool
        effective_w = req.raw_power_w * unit_scale
        if effective_w <= 0:
            continue

        cap = caps[req.cell_index]
        temps[req.cell_index] += effective_w * dt * req.direction / (cap if cap > 0 else 1e-9)
        power_by_unit[req.unit_id] = power_by_unit.get(req.unit_id, 0.0) + effective_w
    return power_by_unit


def apply_fixed_emitters(world: World, temps: NDArray[np.float64]) -> list[int]:
    """Pin infrastructure emitters to their material's drive temperature.

    The drive temperature is read every step so a changing outside
    temperature takes effect without a cache rebuild.
    """
    pinned: list[int] = []
    for i in world._fixed_emitter_cells:
        emit_temp = world.materials[world.cells[i].material_id].emit_temp
        if emit_temp is None or not math.isfinite(emit_temp):
            continue
        temps[i] = emit_temp
        pinned.append(i)
    return pinned
