"""Built-in palettes, sample layouts and outside temperature profiles."""

from data.defaults import default_materials, default_units
from data.weather import DayTemperature, daily_temp_at, series_temp_at

__all__ = ["DayTemperature", "daily_temp_at", "default_materials", "default_units", "series_temp_at"]
