"""Home/away schedule and comfort scoring."""

from core.models import OwnedParams, SharedParams, TempRange, Unit, UnitParams

_MINUTES_PER_DAY = 1440


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def is_home_now(params: UnitParams, seconds_of_day: float) -> bool:
    """Whether an owned unit is inside its home window.

    Equal bounds mean "always home"; a window with from > to wraps past
    midnight. The shared zone has no schedule and is never "home".
    """
    match params:
        case SharedParams():
            return False
        case OwnedParams(home_from_min=from_min, home_to_min=to_min):
            t_min = int(seconds_of_day // 60) % _MINUTES_PER_DAY
            start = int(_clamp(from_min, 0, _MINUTES_PER_DAY - 1))
            end = int(_clamp(to_min, 0, _MINUTES_PER_DAY - 1))
            if start == end:
                return True
            if start < end:
                return start <= t_min < end
            return t_min >= start or t_min < end


def active_range(unit: Unit, seconds_of_day: float) -> TempRange:
    """Comfort range currently in force for a unit."""
    match unit.params:
        case SharedParams(comfort_range=comfort):
            return comfort
        case OwnedParams(home=home, away=away):
            return home if is_home_now(unit.params, seconds_of_day) else away


def comfort_score(avg_temp: float, comfort: TempRange) -> float:
    """Map temperature deviation outside the range to a score in [0, 100].

    score = 100 * (1 - deviation / (half_band + 2)), half_band >= 0.5
    """
    if avg_temp < comfort.min:
        deviation = comfort.min - avg_temp
    elif avg_temp > comfort.max:
        deviation = avg_temp - comfort.max
    else:
        deviation = 0.0
    half_band = max(0.5, comfort.width / 2)
    return _clamp(100 * (1 - deviation / (half_band + 2)), 0.0, 100.0)
