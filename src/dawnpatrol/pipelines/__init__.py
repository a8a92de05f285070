"""Forecast and sensor providers for dawnpatrol.

Each provider is responsible for:
1. Fetching a payload from its API
2. Parsing it through a typed schema
3. Normalizing it to canonical units

Forecast providers:
- noaa: National Weather Service hourly + 12-hour periods (primary)
- openmeteo: Open-Meteo hourly forecast (primary, fills cloud/pressure)
- openweather: OpenWeatherMap 3-hourly forecast (fallback, needs key)

Sensor providers (anemometer ground truth):
- ecowitt: Ecowitt gateway history
- windalert: WindAlert / WeatherFlow spot graph
"""

from .aggregator import WeatherAggregator, assess_reliability, build_default_aggregator
from .ecowitt import EcowittSensor
from .merge import merge_period_and_hourly, merge_series
from .noaa import NOAAProvider
from .openmeteo import OpenMeteoProvider
from .openweather import OpenWeatherProvider
from .windalert import WindAlertSensor

__all__ = [
    "EcowittSensor",
    "NOAAProvider",
    "OpenMeteoProvider",
    "OpenWeatherProvider",
    "WeatherAggregator",
    "WindAlertSensor",
    "assess_reliability",
    "build_default_aggregator",
    "merge_period_and_hourly",
    "merge_series",
]
