"""Multi-source weather aggregation.

For each location, providers are tried in priority order until one succeeds.
Supplemental providers then fill fields the winner lacks. Locations are
fetched concurrently and joined best-effort: a location whose providers all
fail yields an empty series, never an exception.

Example:
    >>> aggregator = build_default_aggregator(load_credentials())
    >>> snapshot = aggregator.fetch_snapshot()
    >>> snapshot.reliability
    <Reliability.HIGH: 'high'>
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping, Optional, Sequence

import requests
from pydantic import ValidationError

from dawnpatrol.cache.models import (
    DEFAULT_LOCATIONS,
    AggregateSnapshot,
    Location,
    LocationSeries,
    Reliability,
)
from dawnpatrol.pipelines.merge import DEFAULT_TOLERANCE, merge_series
from dawnpatrol.utils.base import ForecastProvider, ProviderError

logger = logging.getLogger(__name__)

# Errors a provider may surface for one location; anything else is a bug
SOURCE_ERRORS = (ProviderError, requests.RequestException, ValidationError)


def assess_reliability(series: Sequence[LocationSeries]) -> Reliability:
    """Grade a snapshot by how many locations got data and from what.

    - high: at least two locations served by a primary provider
    - medium: one location, or only fallback providers, succeeded
    - low: no location returned data
    """
    with_data = [s for s in series if not s.is_empty]
    if not with_data:
        return Reliability.LOW
    if sum(1 for s in with_data if s.primary_source) >= 2:
        return Reliability.HIGH
    return Reliability.MEDIUM


def source_label(series: Sequence[LocationSeries]) -> str:
    """Distinct provider names that supplied data, in first-seen order."""
    names: list[str] = []
    for s in series:
        if not s.source:
            continue
        for name in s.source.split("+"):
            if name not in names:
                names.append(name)
    return "+".join(names) if names else "none"


class WeatherAggregator:
    """Fetch forecasts for several locations from prioritized providers.

    Args:
        locations: Locations to fetch
        providers: Providers in priority order; first success wins
        supplements: Providers merged into the winner's series to fill gaps
        max_workers: Concurrent location fetches
        tolerance: Nearest-timestamp tolerance for merging series
        clock: Callable returning the current aware datetime
    """

    def __init__(
        self,
        locations: Optional[Sequence[Location]] = None,
        providers: Optional[Sequence[ForecastProvider]] = None,
        supplements: Optional[Sequence[ForecastProvider]] = None,
        max_workers: int = 4,
        tolerance: timedelta = DEFAULT_TOLERANCE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.locations = list(locations if locations is not None else DEFAULT_LOCATIONS)
        self.providers = list(providers or [])
        self.supplements = list(supplements or [])
        self.max_workers = max_workers
        self.tolerance = tolerance
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        if not self.providers:
            raise ValueError("WeatherAggregator needs at least one provider")

    def fetch_location(self, location: Location) -> tuple[LocationSeries, list[str]]:
        """Fetch one location, falling through providers on failure.

        Returns:
            Tuple of (series, error messages). The series is empty when every
            provider failed.
        """
        errors: list[str] = []

        for provider in self.providers:
            try:
                samples = provider.fetch(location)
            except SOURCE_ERRORS as e:
                logger.warning(f"{location.name}: {provider.name} failed - {e}")
                errors.append(f"{location.name}/{provider.name}: {e}")
                continue

            if not samples:
                errors.append(f"{location.name}/{provider.name}: no samples")
                continue

            validation = provider.validate(samples)
            if not validation.valid:
                logger.warning(f"{location.name}: {provider.name} {validation} {validation.issues}")

            used = [provider.name]
            for supplement in self.supplements:
                if supplement.name == provider.name:
                    continue
                try:
                    extra = supplement.fetch(location)
                except SOURCE_ERRORS as e:
                    logger.info(f"{location.name}: supplement {supplement.name} unavailable - {e}")
                    errors.append(f"{location.name}/{supplement.name}: {e}")
                    continue
                samples = merge_series(samples, extra, self.tolerance)
                used.append(supplement.name)

            logger.info(f"{location.name}: {len(samples)} samples from {'+'.join(used)}")
            return (
                LocationSeries(
                    location=location,
                    samples=tuple(samples),
                    source="+".join(used),
                    primary_source=provider.primary,
                ),
                errors,
            )

        logger.error(f"{location.name}: all {len(self.providers)} providers failed")
        return LocationSeries(location=location), errors

    def fetch_snapshot(self) -> AggregateSnapshot:
        """Fetch every location concurrently and build a snapshot.

        Never raises for source failures; failed locations keep an empty
        series and lower the reliability tag.
        """
        results: dict[str, LocationSeries] = {}
        errors: list[str] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(self.fetch_location, loc): loc for loc in self.locations}
            for future in as_completed(futures):
                location = futures[future]
                try:
                    series, location_errors = future.result()
                except Exception as e:
                    logger.exception(f"{location.name}: unexpected fetch error")
                    series, location_errors = LocationSeries(location=location), [str(e)]
                results[location.name] = series
                errors.extend(location_errors)

        ordered = tuple(results[loc.name] for loc in self.locations)
        snapshot = AggregateSnapshot(
            series=ordered,
            fetched_at=self.clock(),
            source=source_label(ordered),
            reliability=assess_reliability(ordered),
            errors=tuple(errors),
        )
        logger.info(str(snapshot))
        return snapshot


def build_default_aggregator(
    credentials: Optional[Mapping[str, str]] = None,
    locations: Optional[Sequence[Location]] = None,
    timezone_name: str = "America/Denver",
) -> WeatherAggregator:
    """Build the standard provider chain: NOAA, then Open-Meteo, then OpenWeather.

    Open-Meteo also supplements the NOAA series with cloud cover and pressure.
    OpenWeather is only added when an API key is configured.
    """
    from dawnpatrol.pipelines.noaa import NOAAProvider
    from dawnpatrol.pipelines.openmeteo import OpenMeteoProvider
    from dawnpatrol.pipelines.openweather import OpenWeatherProvider

    credentials = credentials or {}
    openmeteo = OpenMeteoProvider(timezone=timezone_name)
    providers: list[ForecastProvider] = [
        NOAAProvider(user_agent=credentials.get("NOAA_USER_AGENT")),
        openmeteo,
    ]
    if credentials.get("OPENWEATHER_API_KEY"):
        providers.append(OpenWeatherProvider(api_key=credentials["OPENWEATHER_API_KEY"]))

    return WeatherAggregator(locations=locations, providers=providers, supplements=[openmeteo])
