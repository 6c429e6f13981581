"""Outside temperature profiles driving the outside material."""

import math
from collections.abc import Sequence
from typing import NamedTuple


class DayTemperature(NamedTuple):
    min_c: float
    max_c: float


def series_temp_at(elapsed_s: float, series: Sequence[float], fallback_c: float) -> float:
    """Hourly series value for the hour elapsed; wraps around the series."""
    if not series:
        return fallback_c
    hour_index = int(max(0.0, elapsed_s) // 3600) % len(series)
    value = float(series[hour_index])
    return value if math.isfinite(value) else fallback_c


def daily_temp_at(elapsed_s: float, day: DayTemperature, start_s: float = 0.0) -> float:
    """Sinusoidal curve within a day: coldest at 05:00, warmest at 17:00.

    ``start_s`` is the time of day (seconds) at which the run starts.
    """
    hour = ((elapsed_s + start_s) % 86400) / 3600
    mid = (day.min_c + day.max_c) / 2
    amp = (day.max_c - day.min_c) / 2
    return mid - amp * math.cos(2 * math.pi * (hour - 5) / 24)
