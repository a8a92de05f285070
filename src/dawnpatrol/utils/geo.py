"""Geographic and wind-direction utilities."""

from math import atan2, cos, degrees, radians, sin
from typing import Iterable, Optional

# 16-point compass rose, clockwise from north
COMPASS_POINTS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]


def normalize_direction(direction: float) -> float:
    """Wrap a direction into [0, 360)."""
    return direction % 360


def angular_difference(a: float, b: float) -> float:
    """Smallest absolute angle in degrees between two directions (0-180)."""
    diff = abs(normalize_direction(a) - normalize_direction(b))
    return 360 - diff if diff > 180 else diff


def within_sector(direction: float, center: float, half_width: float) -> bool:
    """Check if direction lies within center +/- half_width, wrapping at 360."""
    return angular_difference(direction, center) <= half_width


def circular_mean(directions: Iterable[float]) -> Optional[float]:
    """Mean of compass directions using unit vectors.

    A plain arithmetic mean of 350 and 10 gives 180; the vector mean gives 0.

    Returns:
        Mean direction in [0, 360), or None if there are no directions
    """
    sin_sum = 0.0
    cos_sum = 0.0
    count = 0
    for d in directions:
        sin_sum += sin(radians(d))
        cos_sum += cos(radians(d))
        count += 1
    if count == 0:
        return None
    return normalize_direction(degrees(atan2(sin_sum / count, cos_sum / count)))


def degrees_to_compass(direction: float) -> str:
    """Convert a direction in degrees to a 16-point compass label."""
    index = int((normalize_direction(direction) + 11.25) // 22.5) % 16
    return COMPASS_POINTS[index]


def compass_to_degrees(label: str) -> float:
    """Convert a 16-point compass label (e.g., 'NW') to degrees.

    Raises:
        ValueError: If the label is not a compass point
    """
    key = label.strip().upper()
    if key not in COMPASS_POINTS:
        raise ValueError(f"Unknown compass direction: {label!r}")
    return COMPASS_POINTS.index(key) * 22.5
