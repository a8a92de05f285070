"""NOAA National Weather Service forecast provider.

The NWS API resolves a lat/lon to a forecast grid cell, which exposes two
feeds:

- forecastHourly: hourly periods (~156 hours)
- forecast: 12-hour day/night periods (7 days)

Neither feed carries cloud cover or pressure; the aggregator fills those from
a supplemental hourly provider.

API docs: https://www.weather.gov/documentation/services-web-api
"""

import logging
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ValidationError

from dawnpatrol.cache.models import Location, WeatherSample
from dawnpatrol.pipelines.http import DEFAULT_TIMEOUT, get_json
from dawnpatrol.pipelines.merge import merge_period_and_hourly
from dawnpatrol.utils.base import ForecastProvider, ProviderError
from dawnpatrol.utils.geo import compass_to_degrees
from dawnpatrol.utils.units import UnknownUnitError, to_fahrenheit, to_mph

logger = logging.getLogger(__name__)

NOAA_API_URL = "https://api.weather.gov"

# "10 mph", "5 to 10 mph", "15 km/h"
_WIND_RE = re.compile(r"(\d+(?:\.\d+)?)(?:\s*to\s*(\d+(?:\.\d+)?))?\s*([a-zA-Z/]+)?")


class Quantity(BaseModel):
    """NWS quantitative value with a WMO unit code."""

    value: Optional[float] = None
    unitCode: Optional[str] = None


class PointProperties(BaseModel):
    forecast: str
    forecastHourly: str


class PointResponse(BaseModel):
    properties: PointProperties


class ForecastPeriod(BaseModel):
    """One period of an NWS forecast (hourly or 12-hour)."""

    number: int
    startTime: datetime
    endTime: datetime
    temperature: Optional[float] = None
    temperatureUnit: str = "F"
    windSpeed: Optional[str] = None
    windDirection: Optional[str] = None
    probabilityOfPrecipitation: Optional[Quantity] = None
    relativeHumidity: Optional[Quantity] = None
    shortForecast: str = ""


class ForecastProperties(BaseModel):
    periods: list[ForecastPeriod]


class ForecastResponse(BaseModel):
    properties: ForecastProperties


def parse_wind_speed(text: Optional[str]) -> Optional[float]:
    """Parse an NWS wind string to mph.

    Ranges ("5 to 10 mph") return the midpoint.

    Raises:
        UnknownUnitError: If the unit text is not a known speed unit
    """
    if not text:
        return None
    match = _WIND_RE.search(text)
    if match is None:
        return None
    low = float(match.group(1))
    high = float(match.group(2)) if match.group(2) else low
    unit = match.group(3) or "mph"
    return to_mph((low + high) / 2, unit)


def parse_wind_direction(text: Optional[str]) -> Optional[float]:
    """Parse a compass label like 'NW'; empty or variable directions give None."""
    if not text:
        return None
    try:
        return compass_to_degrees(text)
    except ValueError:
        logger.debug(f"Unrecognized NWS wind direction: {text!r}")
        return None


def period_to_sample(period: ForecastPeriod) -> WeatherSample:
    """Normalize one forecast period."""
    pop = period.probabilityOfPrecipitation
    rh = period.relativeHumidity
    return WeatherSample(
        timestamp=period.startTime,
        temperature_f=to_fahrenheit(period.temperature, period.temperatureUnit),
        humidity=rh.value if rh else None,
        wind_speed_mph=parse_wind_speed(period.windSpeed),
        wind_direction=parse_wind_direction(period.windDirection),
        precipitation_probability=pop.value if pop else None,
    )


class NOAAProvider(ForecastProvider):
    """Forecast provider backed by api.weather.gov.

    Example:
        >>> provider = NOAAProvider(user_agent="dawnpatrol (me@example.com)")
        >>> samples = provider.fetch(SODA_LAKE)
    """

    name = "noaa"
    primary = True

    def __init__(
        self,
        user_agent: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        include_periods: bool = True,
    ):
        """Initialize the NOAA provider.

        Args:
            user_agent: Contact string NWS asks every client to send
            timeout: HTTP request timeout in seconds
            include_periods: Also fetch 12-hour periods to fill hourly gaps
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self.include_periods = include_periods

    def _get(self, url: str) -> dict:
        headers = {"Accept": "application/geo+json"}
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        return get_json(self.name, url, headers=headers, timeout=self.timeout)

    def get_forecast_urls(self, location: Location) -> PointProperties:
        """Resolve the forecast grid URLs for a location."""
        url = f"{NOAA_API_URL}/points/{location.lat:.4f},{location.lon:.4f}"
        try:
            return PointResponse.model_validate(self._get(url)).properties
        except ValidationError as e:
            raise ProviderError(self.name, f"malformed points payload: {e}") from e

    def get_periods(self, url: str) -> list[ForecastPeriod]:
        try:
            return ForecastResponse.model_validate(self._get(url)).properties.periods
        except ValidationError as e:
            raise ProviderError(self.name, f"malformed forecast payload: {e}") from e

    def fetch(self, location: Location) -> list[WeatherSample]:
        """Fetch hourly samples, gap-filled from 12-hour periods."""
        urls = self.get_forecast_urls(location)

        try:
            hourly = [period_to_sample(p) for p in self.get_periods(urls.forecastHourly)]
            periods = []
            if self.include_periods:
                periods = [period_to_sample(p) for p in self.get_periods(urls.forecast)]
        except UnknownUnitError as e:
            raise ProviderError(self.name, str(e)) from e

        if not hourly and not periods:
            raise ProviderError(self.name, f"no forecast periods for {location.name}")

        samples = merge_period_and_hourly(periods, hourly)
        logger.debug(
            f"NOAA {location.name}: {len(hourly)} hourly + {len(periods)} periods "
            f"-> {len(samples)} samples"
        )
        return samples
