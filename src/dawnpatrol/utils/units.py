"""Unit and timestamp normalization.

Every provider reports in its own units. Downstream code only ever sees the
canonical schema:

- wind speed: mph
- temperature: degrees Fahrenheit
- pressure: hPa
- visibility: miles
- time: timezone-aware ISO-8601

Unknown unit codes raise UnknownUnitError instead of passing values through.
"""

from datetime import datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

import pandas as pd

# Multiply a value in <unit> by the factor to get the canonical unit
SPEED_TO_MPH = {
    "mph": 1.0,
    "kph": 0.621371,
    "kmh": 0.621371,
    "km/h": 0.621371,
    "ms": 2.236936,
    "m/s": 2.236936,
    "knots": 1.150779,
    "kt": 1.150779,
}

PRESSURE_TO_HPA = {
    "hpa": 1.0,
    "mb": 1.0,
    "mbar": 1.0,
    "pa": 0.01,
    "kpa": 10.0,
    "inhg": 33.8639,
}

TEMPERATURE_UNITS = {"f", "c", "k"}

DISTANCE_TO_MILES = {
    "mi": 1.0,
    "m": 1 / 1609.344,
    "km": 0.621371,
    "ft": 1 / 5280,
}

# Epoch values above this are treated as milliseconds
_EPOCH_MS_THRESHOLD = 1e11

Number = Union[int, float]


class UnknownUnitError(ValueError):
    """Raised when a unit code is not recognized."""

    def __init__(self, unit: str, kind: str):
        self.unit = unit
        self.kind = kind
        super().__init__(f"Unknown {kind} unit: {unit!r}")


def _key(unit: str, table, kind: str) -> str:
    if not isinstance(unit, str):
        raise UnknownUnitError(str(unit), kind)
    key = unit.strip().lower()
    if key not in table:
        raise UnknownUnitError(unit, kind)
    return key


def to_mph(value: Optional[Number], from_unit: str) -> Optional[float]:
    """Convert a wind speed to mph.

    Args:
        value: Speed in from_unit (None passes through as None)
        from_unit: One of mph, kph/kmh/km/h, ms/m/s, knots/kt

    Returns:
        Speed in mph

    Raises:
        UnknownUnitError: If from_unit is not recognized
    """
    factor = SPEED_TO_MPH[_key(from_unit, SPEED_TO_MPH, "speed")]
    if value is None:
        return None
    return float(value) * factor


def from_mph(value: Optional[Number], to_unit: str) -> Optional[float]:
    """Convert a speed in mph back to to_unit."""
    factor = SPEED_TO_MPH[_key(to_unit, SPEED_TO_MPH, "speed")]
    if value is None:
        return None
    return float(value) / factor


def to_fahrenheit(value: Optional[Number], from_unit: str) -> Optional[float]:
    """Convert a temperature to degrees Fahrenheit.

    Args:
        value: Temperature in from_unit
        from_unit: F, C or K (case-insensitive)

    Returns:
        Temperature in Fahrenheit

    Raises:
        UnknownUnitError: If from_unit is not recognized
    """
    key = _key(from_unit, TEMPERATURE_UNITS, "temperature")
    if value is None:
        return None
    value = float(value)
    if key == "c":
        return value * 9 / 5 + 32
    if key == "k":
        return (value - 273.15) * 9 / 5 + 32
    return value


def from_fahrenheit(value: Optional[Number], to_unit: str) -> Optional[float]:
    """Convert a Fahrenheit temperature back to to_unit."""
    key = _key(to_unit, TEMPERATURE_UNITS, "temperature")
    if value is None:
        return None
    value = float(value)
    if key == "c":
        return (value - 32) * 5 / 9
    if key == "k":
        return (value - 32) * 5 / 9 + 273.15
    return value


def to_hpa(value: Optional[Number], from_unit: str) -> Optional[float]:
    """Convert a pressure to hPa.

    Raises:
        UnknownUnitError: If from_unit is not one of hPa, mb, Pa, kPa, inHg
    """
    factor = PRESSURE_TO_HPA[_key(from_unit, PRESSURE_TO_HPA, "pressure")]
    if value is None:
        return None
    return float(value) * factor


def from_hpa(value: Optional[Number], to_unit: str) -> Optional[float]:
    """Convert a pressure in hPa back to to_unit."""
    factor = PRESSURE_TO_HPA[_key(to_unit, PRESSURE_TO_HPA, "pressure")]
    if value is None:
        return None
    return float(value) / factor


def to_datetime(
    value: Union[str, Number, datetime, pd.Timestamp],
    tz: Optional[str] = None,
) -> datetime:
    """Parse a timestamp into a timezone-aware datetime.

    Accepts epoch seconds, epoch milliseconds, ISO-8601 strings, and
    datetime/Timestamp objects. Naive values are assumed to be UTC unless
    tz is given, in which case they are interpreted in that zone.

    Args:
        value: Timestamp in any supported form
        tz: IANA zone name for naive inputs (e.g., 'America/Denver')

    Returns:
        Aware datetime

    Raises:
        ValueError: If the value cannot be parsed
    """
    zone = ZoneInfo(tz) if tz else timezone.utc

    if isinstance(value, bool):
        raise ValueError(f"Cannot interpret boolean as timestamp: {value}")

    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) > _EPOCH_MS_THRESHOLD else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()

    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty timestamp string")
        if text.lstrip("-").isdigit():
            return to_datetime(int(text), tz)
        try:
            value = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f"Unparseable timestamp: {text!r}") from e

    if not isinstance(value, datetime):
        raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")

    if value.tzinfo is None:
        value = value.replace(tzinfo=zone)
    return value


def to_iso_time(
    value: Union[str, Number, datetime, pd.Timestamp],
    tz: Optional[str] = None,
) -> str:
    """Normalize a timestamp to an aware ISO-8601 string."""
    return to_datetime(value, tz).isoformat()


def to_miles(value: Optional[Number], from_unit: str) -> Optional[float]:
    """Convert a distance (visibility) to miles."""
    factor = DISTANCE_TO_MILES[_key(from_unit, DISTANCE_TO_MILES, "distance")]
    if value is None:
        return None
    return float(value) * factor


def from_miles(value: Optional[Number], to_unit: str) -> Optional[float]:
    """Convert a distance in miles back to to_unit."""
    factor = DISTANCE_TO_MILES[_key(to_unit, DISTANCE_TO_MILES, "distance")]
    if value is None:
        return None
    return float(value) / factor
