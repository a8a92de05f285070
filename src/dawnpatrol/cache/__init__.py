"""Persistence and lifecycle layer for dawnpatrol.

Provides the data model, the DuckDB prediction store, the time-aware
prediction lifecycle and the scheduled refresh.

Background refresh can be run via:
    python -m dawnpatrol.cache.refresh

Or scheduled via cron:
    # Every 30 minutes
    */30 * * * * python -m dawnpatrol.cache.refresh

Note: store, lifecycle and refresh exports are lazy-loaded because they
depend on the synthesizer and verification modules, which themselves import
the data model from this package.
"""

from dawnpatrol.cache.models import (
    DEFAULT_LOCATIONS,
    AggregateSnapshot,
    FetchLog,
    Location,
    LocationRole,
    LocationSeries,
    Reliability,
    WeatherSample,
    WindSample,
)

_LAZY = {
    "PredictionStore": "dawnpatrol.cache.database",
    "DEFAULT_DB_PATH": "dawnpatrol.cache.database",
    "Clock": "dawnpatrol.cache.predictor",
    "FixedClock": "dawnpatrol.cache.predictor",
    "LifecycleState": "dawnpatrol.cache.predictor",
    "PredictionLifecycle": "dawnpatrol.cache.predictor",
    "SystemClock": "dawnpatrol.cache.predictor",
    "lifecycle_state": "dawnpatrol.cache.predictor",
    "RefreshResult": "dawnpatrol.cache.refresh",
    "next_refresh_time": "dawnpatrol.cache.refresh",
    "run_refresh": "dawnpatrol.cache.refresh",
    "run_verification": "dawnpatrol.cache.refresh",
}


def __getattr__(name):
    """Lazy load store, lifecycle and refresh components."""
    if name in _LAZY:
        import importlib
        return getattr(importlib.import_module(_LAZY[name]), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "AggregateSnapshot",
    "Clock",
    "DEFAULT_DB_PATH",
    "DEFAULT_LOCATIONS",
    "FetchLog",
    "FixedClock",
    "LifecycleState",
    "Location",
    "LocationRole",
    "LocationSeries",
    "PredictionLifecycle",
    "PredictionStore",
    "RefreshResult",
    "Reliability",
    "SystemClock",
    "WeatherSample",
    "WindSample",
    "lifecycle_state",
    "next_refresh_time",
    "run_refresh",
    "run_verification",
]
