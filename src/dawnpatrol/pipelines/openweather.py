"""OpenWeatherMap 5 day / 3 hour forecast provider.

Secondary source: needs an API key and has coarser resolution than the
hourly feeds, so snapshots built only from it are tagged medium reliability.

API docs: https://openweathermap.org/forecast5
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from dawnpatrol.cache.models import Location, WeatherSample
from dawnpatrol.pipelines.http import DEFAULT_TIMEOUT, get_json
from dawnpatrol.utils.base import ForecastProvider, ProviderError
from dawnpatrol.utils.units import to_datetime, to_fahrenheit, to_hpa, to_miles, to_mph

logger = logging.getLogger(__name__)

OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/forecast"

# OpenWeather 'units' parameter -> (temperature unit, speed unit)
UNIT_SYSTEMS = {
    "standard": ("K", "ms"),
    "metric": ("C", "ms"),
    "imperial": ("F", "mph"),
}


class MainBlock(BaseModel):
    temp: Optional[float] = None
    feels_like: Optional[float] = None
    pressure: Optional[float] = None
    humidity: Optional[float] = None


class CloudBlock(BaseModel):
    all: Optional[float] = None


class WindBlock(BaseModel):
    speed: Optional[float] = None
    deg: Optional[float] = None
    gust: Optional[float] = None


class ForecastItem(BaseModel):
    dt: int
    main: MainBlock
    clouds: CloudBlock = CloudBlock()
    wind: WindBlock = WindBlock()
    visibility: Optional[float] = None
    pop: Optional[float] = None


class OpenWeatherResponse(BaseModel):
    cod: str | int = "200"
    items: list[ForecastItem] = Field(alias="list")


def item_to_sample(item: ForecastItem, units: str = "metric") -> WeatherSample:
    """Normalize one forecast entry. pop is a 0-1 fraction, visibility meters."""
    temp_unit, speed_unit = UNIT_SYSTEMS[units]
    return WeatherSample(
        timestamp=to_datetime(item.dt),
        temperature_f=to_fahrenheit(item.main.temp, temp_unit),
        humidity=item.main.humidity,
        pressure_hpa=to_hpa(item.main.pressure, "hPa"),
        wind_speed_mph=to_mph(item.wind.speed, speed_unit),
        wind_direction=item.wind.deg,
        precipitation_probability=item.pop * 100 if item.pop is not None else None,
        cloud_cover=item.clouds.all,
        visibility_mi=to_miles(item.visibility, "m"),
        feels_like_f=to_fahrenheit(item.main.feels_like, temp_unit),
    )


class OpenWeatherProvider(ForecastProvider):
    """Fallback forecast provider backed by OpenWeatherMap."""

    name = "openweather"
    primary = False

    def __init__(
        self,
        api_key: str,
        units: str = "metric",
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the provider.

        Args:
            api_key: OpenWeatherMap API key
            units: 'standard', 'metric' or 'imperial'
            timeout: HTTP request timeout in seconds

        Raises:
            ValueError: If units is not a known OpenWeather unit system
        """
        if units not in UNIT_SYSTEMS:
            raise ValueError(f"Invalid units: {units}. Must be one of {list(UNIT_SYSTEMS)}")
        self.api_key = api_key
        self.units = units
        self.timeout = timeout

    def fetch(self, location: Location) -> list[WeatherSample]:
        params = {
            "lat": location.lat,
            "lon": location.lon,
            "appid": self.api_key,
            "units": self.units,
        }
        data = get_json(self.name, OPENWEATHER_URL, params=params, timeout=self.timeout)

        try:
            payload = OpenWeatherResponse.model_validate(data)
        except ValidationError as e:
            raise ProviderError(self.name, f"malformed payload: {e}") from e

        if str(payload.cod) != "200":
            raise ProviderError(self.name, f"API returned cod={payload.cod}")
        if not payload.items:
            raise ProviderError(self.name, f"empty forecast list for {location.name}")

        samples = [item_to_sample(item, self.units) for item in payload.items]
        logger.debug(f"OpenWeather {location.name}: {len(samples)} 3-hourly samples")
        return samples
