"""Base classes for forecast and sensor providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from dawnpatrol.cache.models import Location, WeatherSample, WindSample

# Physically plausible ranges in canonical units
PHYSICAL_LIMITS: dict[str, tuple[float, float]] = {
    "temperature_f": (-80.0, 130.0),
    "humidity": (0.0, 100.0),
    "pressure_hpa": (850.0, 1090.0),
    "wind_speed_mph": (0.0, 200.0),
    "wind_direction": (0.0, 360.0),
    "precipitation_probability": (0.0, 100.0),
    "cloud_cover": (0.0, 100.0),
    "visibility_mi": (0.0, 100.0),
}


class ProviderError(Exception):
    """Raised when a provider cannot deliver usable data.

    Covers network errors, HTTP errors, rate limits and malformed payloads.
    The aggregator catches these per source and falls through.
    """

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


@dataclass
class ValidationResult:
    """Result of sample validation.

    Attributes:
        valid: Whether the data passed all validation checks
        total_rows: Number of samples checked
        missing_pct: Percentage of missing field values (0-100)
        outliers_count: Number of values outside physical limits
        issues: List of validation issues found
        stats: Dictionary of summary statistics
    """

    valid: bool
    total_rows: int
    missing_pct: float
    outliers_count: int = 0
    issues: list[str] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        status = "VALID" if self.valid else "INVALID"
        return (
            f"ValidationResult({status}, "
            f"rows={self.total_rows}, "
            f"missing={self.missing_pct:.1f}%, "
            f"outliers={self.outliers_count})"
        )


def validate_samples(samples: list["WeatherSample"]) -> ValidationResult:
    """Check normalized samples against physical limits.

    Out-of-range values are counted, never modified.
    """
    if not samples:
        return ValidationResult(
            valid=False, total_rows=0, missing_pct=100.0, issues=["no samples"]
        )

    missing = 0
    outliers = 0
    issues = []
    for name, (low, high) in PHYSICAL_LIMITS.items():
        values = [getattr(s, name) for s in samples]
        missing += sum(1 for v in values if v is None)
        bad = [v for v in values if v is not None and not low <= v <= high]
        if bad:
            outliers += len(bad)
            issues.append(f"{name}: {len(bad)} values outside [{low}, {high}]")

    total_values = len(samples) * len(PHYSICAL_LIMITS)
    timestamps = [s.timestamp for s in samples]
    return ValidationResult(
        valid=outliers == 0,
        total_rows=len(samples),
        missing_pct=missing / total_values * 100,
        outliers_count=outliers,
        issues=issues,
        stats={"start": min(timestamps), "end": max(timestamps)},
    )


class ForecastProvider(ABC):
    """Abstract base class for forecast providers.

    Subclasses fetch a payload, parse it through a typed schema and return
    normalized samples. Any failure is raised as ProviderError.
    """

    name: str = "provider"
    primary: bool = True

    @abstractmethod
    def fetch(self, location: "Location") -> list["WeatherSample"]:
        """Fetch normalized forecast samples for a location.

        Args:
            location: Location to forecast

        Returns:
            Samples in canonical units (may be unsorted)

        Raises:
            ProviderError: On any network, HTTP or payload failure
        """
        pass

    def validate(self, samples: list["WeatherSample"]) -> ValidationResult:
        """Validate samples for physical plausibility."""
        return validate_samples(samples)


class SensorProvider(ABC):
    """Abstract base class for anemometer stations."""

    name: str = "sensor"

    @abstractmethod
    def fetch_history(
        self, start: datetime, end: Optional[datetime] = None
    ) -> list["WindSample"]:
        """Fetch wind samples between start and end.

        Raises:
            ProviderError: On any network, HTTP or payload failure
        """
        pass
