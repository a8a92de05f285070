"""Shared utilities for dawnpatrol."""

from .base import (
    ForecastProvider,
    ProviderError,
    SensorProvider,
    ValidationResult,
    validate_samples,
)
from .config import AlarmCriteria, ConfigurationError, PredictionConfig, load_credentials
from .geo import angular_difference, circular_mean, degrees_to_compass
from .io import get_data_path
from .units import (
    UnknownUnitError,
    to_datetime,
    to_fahrenheit,
    to_hpa,
    to_iso_time,
    to_mph,
)

__all__ = [
    "AlarmCriteria",
    "ConfigurationError",
    "ForecastProvider",
    "PredictionConfig",
    "ProviderError",
    "SensorProvider",
    "UnknownUnitError",
    "ValidationResult",
    "angular_difference",
    "circular_mean",
    "degrees_to_compass",
    "get_data_path",
    "load_credentials",
    "to_datetime",
    "to_fahrenheit",
    "to_hpa",
    "to_iso_time",
    "to_mph",
    "validate_samples",
]
