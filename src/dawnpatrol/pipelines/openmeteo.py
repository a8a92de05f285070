"""Open-Meteo hourly forecast provider.

Keyless and global; supplies the cloud cover and pressure fields the NWS
feeds lack. Units are requested explicitly and then normalized using the
``hourly_units`` block the API echoes back, so a server-side unit change is
caught rather than silently misread.

API docs: https://open-meteo.com/en/docs
"""

import logging
from typing import Optional

from pydantic import BaseModel, ValidationError

from dawnpatrol.cache.models import Location, WeatherSample
from dawnpatrol.pipelines.http import DEFAULT_TIMEOUT, get_json
from dawnpatrol.utils.base import ForecastProvider, ProviderError
from dawnpatrol.utils.units import (
    UnknownUnitError,
    to_datetime,
    to_fahrenheit,
    to_hpa,
    to_miles,
    to_mph,
)

logger = logging.getLogger(__name__)

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"

HOURLY_VARIABLES = [
    "temperature_2m",
    "relative_humidity_2m",
    "precipitation_probability",
    "cloud_cover",
    "pressure_msl",
    "wind_speed_10m",
    "wind_direction_10m",
    "visibility",
    "apparent_temperature",
    "uv_index",
]

# Open-Meteo unit labels -> unit codes understood by the normalizer
_UNIT_ALIASES = {
    "°C": "C",
    "°F": "F",
    "m/s": "ms",
    "km/h": "kmh",
    "mp/h": "mph",
    "mph": "mph",
    "kn": "knots",
    "hPa": "hPa",
    "m": "m",
    "ft": "ft",
}


class HourlyBlock(BaseModel):
    """Parallel hourly arrays; every list has one entry per timestamp."""

    time: list[str]
    temperature_2m: Optional[list[Optional[float]]] = None
    relative_humidity_2m: Optional[list[Optional[float]]] = None
    precipitation_probability: Optional[list[Optional[float]]] = None
    cloud_cover: Optional[list[Optional[float]]] = None
    pressure_msl: Optional[list[Optional[float]]] = None
    wind_speed_10m: Optional[list[Optional[float]]] = None
    wind_direction_10m: Optional[list[Optional[float]]] = None
    visibility: Optional[list[Optional[float]]] = None
    apparent_temperature: Optional[list[Optional[float]]] = None
    uv_index: Optional[list[Optional[float]]] = None


class OpenMeteoResponse(BaseModel):
    timezone: str = "GMT"
    hourly_units: dict[str, str] = {}
    hourly: HourlyBlock


def _unit(units: dict[str, str], variable: str, default: str) -> str:
    label = units.get(variable, default)
    return _UNIT_ALIASES.get(label, label)


def _column(block: HourlyBlock, name: str, length: int) -> list[Optional[float]]:
    values = getattr(block, name)
    if values is None:
        return [None] * length
    if len(values) != length:
        raise ValueError(f"{name} has {len(values)} values for {length} timestamps")
    return values


def parse_response(payload: OpenMeteoResponse) -> list[WeatherSample]:
    """Normalize an Open-Meteo payload into samples.

    Raises:
        UnknownUnitError: If the API reports a unit the normalizer does not know
        ValueError: If the hourly arrays have mismatched lengths
    """
    hourly = payload.hourly
    units = payload.hourly_units
    n = len(hourly.time)
    cols = {name: _column(hourly, name, n) for name in HOURLY_VARIABLES}

    temp_unit = _unit(units, "temperature_2m", "°C")
    feels_unit = _unit(units, "apparent_temperature", "°C")
    speed_unit = _unit(units, "wind_speed_10m", "m/s")
    pressure_unit = _unit(units, "pressure_msl", "hPa")
    visibility_unit = _unit(units, "visibility", "m")

    samples = []
    for i, stamp in enumerate(hourly.time):
        samples.append(WeatherSample(
            timestamp=to_datetime(stamp, tz=payload.timezone),
            temperature_f=to_fahrenheit(cols["temperature_2m"][i], temp_unit),
            humidity=cols["relative_humidity_2m"][i],
            pressure_hpa=to_hpa(cols["pressure_msl"][i], pressure_unit),
            wind_speed_mph=to_mph(cols["wind_speed_10m"][i], speed_unit),
            wind_direction=cols["wind_direction_10m"][i],
            precipitation_probability=cols["precipitation_probability"][i],
            cloud_cover=cols["cloud_cover"][i],
            visibility_mi=to_miles(cols["visibility"][i], visibility_unit),
            feels_like_f=to_fahrenheit(cols["apparent_temperature"][i], feels_unit),
            uv_index=cols["uv_index"][i],
        ))
    return samples


class OpenMeteoProvider(ForecastProvider):
    """Hourly forecast provider backed by Open-Meteo."""

    name = "openmeteo"
    primary = True

    def __init__(
        self,
        timezone: str = "America/Denver",
        forecast_days: int = 7,
        past_days: int = 1,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the provider.

        Args:
            timezone: Zone Open-Meteo reports local timestamps in
            forecast_days: Days of forecast to request (1-16)
            past_days: Days of history to include (needed for 12 h pressure deltas)
            timeout: HTTP request timeout in seconds
        """
        self.timezone = timezone
        self.forecast_days = forecast_days
        self.past_days = past_days
        self.timeout = timeout

    def fetch(self, location: Location) -> list[WeatherSample]:
        params = {
            "latitude": location.lat,
            "longitude": location.lon,
            "hourly": ",".join(HOURLY_VARIABLES),
            "timezone": self.timezone,
            "temperature_unit": "celsius",
            "wind_speed_unit": "ms",
            "forecast_days": self.forecast_days,
            "past_days": self.past_days,
        }
        data = get_json(self.name, OPEN_METEO_URL, params=params, timeout=self.timeout)

        if isinstance(data, dict) and data.get("error"):
            raise ProviderError(self.name, data.get("reason", "unknown error"))

        try:
            samples = parse_response(OpenMeteoResponse.model_validate(data))
        except (ValidationError, UnknownUnitError, ValueError) as e:
            raise ProviderError(self.name, f"malformed payload: {e}") from e

        if not samples:
            raise ProviderError(self.name, f"empty hourly series for {location.name}")

        logger.debug(f"Open-Meteo {location.name}: {len(samples)} hourly samples")
        return samples
