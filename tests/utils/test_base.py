"""Tests for provider base classes and sample validation."""

from datetime import datetime, timedelta, timezone

import pytest

from dawnpatrol.cache.models import SODA_LAKE, WeatherSample
from dawnpatrol.utils.base import (
    ForecastProvider,
    ProviderError,
    ValidationResult,
    validate_samples,
)

T0 = datetime(2025, 7, 14, 10, 0, tzinfo=timezone.utc)


class TestValidationResult:
    """Tests for ValidationResult dataclass."""

    def test_create_valid_result(self):
        """Should create a valid result."""
        result = ValidationResult(
            valid=True,
            total_rows=1000,
            missing_pct=5.0,
            outliers_count=10,
        )
        assert result.valid is True
        assert result.total_rows == 1000
        assert result.issues == []
        assert result.stats == {}

    def test_str_valid(self):
        """Should format valid result as string."""
        result = ValidationResult(valid=True, total_rows=1000, missing_pct=5.0)
        s = str(result)
        assert "VALID" in s
        assert "1000" in s
        assert "5.0%" in s

    def test_str_invalid(self):
        """Should format invalid result as string."""
        result = ValidationResult(valid=False, total_rows=100, missing_pct=50.0)
        assert "INVALID" in str(result)


class TestValidateSamples:
    """Tests for validate_samples."""

    def test_empty(self):
        """No samples should be invalid."""
        result = validate_samples([])
        assert result.valid is False
        assert result.total_rows == 0
        assert "no samples" in result.issues

    def test_plausible_values(self):
        """Plausible samples should be valid with time-range stats."""
        samples = [
            WeatherSample(timestamp=T0 + timedelta(hours=h), temperature_f=55.0, pressure_hpa=1012.0)
            for h in range(3)
        ]
        result = validate_samples(samples)
        assert result.valid is True
        assert result.total_rows == 3
        assert result.stats["start"] == T0
        assert result.stats["end"] == T0 + timedelta(hours=2)
        assert result.missing_pct > 0

    def test_outliers_counted_not_modified(self):
        """Out-of-range values should be counted and left untouched."""
        sample = WeatherSample(timestamp=T0, temperature_f=200.0, cloud_cover=150.0)
        result = validate_samples([sample])
        assert result.valid is False
        assert result.outliers_count == 2
        assert sample.temperature_f == 200.0
        assert any("temperature_f" in issue for issue in result.issues)


class TestForecastProvider:
    """Tests for the provider ABC."""

    def test_cannot_instantiate_abstract(self):
        """ForecastProvider requires fetch()."""
        with pytest.raises(TypeError):
            ForecastProvider()

    def test_subclass_validate(self):
        """Subclasses should inherit validate()."""

        class Fixed(ForecastProvider):
            name = "fixed"

            def fetch(self, location):
                return [WeatherSample(timestamp=T0, temperature_f=60.0)]

        provider = Fixed()
        samples = provider.fetch(SODA_LAKE)
        assert provider.validate(samples).valid is True


class TestProviderError:
    """Tests for ProviderError."""

    def test_message_includes_provider(self):
        """Message should be prefixed with the provider name."""
        error = ProviderError("noaa", "HTTP 503")
        assert error.provider == "noaa"
        assert str(error) == "noaa: HTTP 503"
