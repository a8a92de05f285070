"""Shared pytest fixtures for dawnpatrol tests.

Test Tiers:
- unit: Fast tests with fixtures, no network (default)
- integration: Tests with recorded API responses
- live: Real API tests, slow, requires network and may need credentials

Run live tests with: pytest -m live --run-live
"""

import tempfile
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from dawnpatrol.cache.models import (
    MORRISON,
    NEDERLAND,
    SODA_LAKE,
    AggregateSnapshot,
    LocationSeries,
    Reliability,
    WeatherSample,
    WindSample,
)

DENVER = ZoneInfo("America/Denver")
TARGET_DAY = date(2025, 7, 14)


def pytest_addoption(parser):
    """Add command line options for test configuration."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run live API tests (slow, requires network)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests using fixtures")
    config.addinivalue_line("markers", "integration: tests with recorded API responses")
    config.addinivalue_line("markers", "live: real API tests (slow, requires network)")


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is specified."""
    if config.getoption("--run-live"):
        # --run-live given: don't skip live tests
        return

    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


def local(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware Denver datetime on day."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=DENVER)


def hourly(start: datetime, hours: int) -> list[datetime]:
    return [start + timedelta(hours=h) for h in range(hours)]


def build_snapshot(
    day: date = TARGET_DAY,
    precipitation: float = 5.0,
    cloud_cover: float = 20.0,
    pressure_start: float = 1010.0,
    pressure_change: float = 3.0,
    valley_temp: float = 60.0,
    mountain_temp: float = 50.0,
    mountain_wind: float = 10.0,
    mountain_direction: float = 270.0,
    fetched_at: Optional[datetime] = None,
) -> AggregateSnapshot:
    """Snapshot with hourly samples from 18:00 the previous evening to 09:00 on day.

    Pressure changes linearly so that the 12 h before 06:00 sees exactly
    pressure_change hPa.
    """
    start = local(day - timedelta(days=1), 18)
    times = hourly(start, 16)

    valley = []
    mountain = []
    for i, ts in enumerate(times):
        pressure = pressure_start + pressure_change * min(i, 12) / 12
        valley.append(WeatherSample(
            timestamp=ts,
            temperature_f=valley_temp,
            pressure_hpa=pressure,
            wind_speed_mph=3.0,
            wind_direction=180.0,
            precipitation_probability=precipitation,
            cloud_cover=cloud_cover,
        ))
        mountain.append(WeatherSample(
            timestamp=ts,
            temperature_f=mountain_temp,
            pressure_hpa=750.0,
            wind_speed_mph=mountain_wind,
            wind_direction=mountain_direction,
            precipitation_probability=precipitation,
            cloud_cover=cloud_cover,
        ))

    series = (
        LocationSeries(SODA_LAKE, tuple(valley), "noaa+openmeteo", True),
        LocationSeries(MORRISON, tuple(valley), "openmeteo", True),
        LocationSeries(NEDERLAND, tuple(mountain), "noaa+openmeteo", True),
    )
    return AggregateSnapshot(
        series=series,
        fetched_at=fetched_at or local(day, 4),
        source="noaa+openmeteo",
        reliability=Reliability.HIGH,
    )


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def target_day() -> date:
    return TARGET_DAY


@pytest.fixture
def go_snapshot() -> AggregateSnapshot:
    """All five factors favorable (wave needs an upper-air profile)."""
    return build_snapshot()


@pytest.fixture
def poor_snapshot() -> AggregateSnapshot:
    """Rainy, overcast, flat pressure, no temperature differential."""
    return build_snapshot(
        precipitation=80.0,
        cloud_cover=95.0,
        pressure_change=0.2,
        valley_temp=55.0,
        mountain_temp=54.0,
        mountain_wind=25.0,
        mountain_direction=90.0,
    )


@pytest.fixture
def empty_snapshot() -> AggregateSnapshot:
    """Every provider failed for every location."""
    return AggregateSnapshot(
        series=tuple(LocationSeries(loc) for loc in (SODA_LAKE, MORRISON, NEDERLAND)),
        fetched_at=local(TARGET_DAY, 4),
        errors=("Soda Lake/noaa: timeout",),
    )


@pytest.fixture
def dawn_wind_samples() -> list[WindSample]:
    """Five-minute sensor readings during a good dawn session (06:00-08:00)."""
    start = local(TARGET_DAY, 6)
    return [
        WindSample(
            timestamp=start + timedelta(minutes=5 * i),
            speed_mph=17.0 + (i % 3),
            direction=300.0 + (i % 4) * 5,
            gust_mph=24.0,
        )
        for i in range(25)
    ]


@pytest.fixture
def temp_store():
    """Create a temporary prediction store for testing."""
    from dawnpatrol.cache.database import PredictionStore

    with tempfile.TemporaryDirectory() as tmpdir:
        store = PredictionStore(Path(tmpdir) / "test.duckdb")
        yield store
        store.close()
