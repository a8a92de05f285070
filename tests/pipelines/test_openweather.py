"""Tests for the OpenWeatherMap fallback provider."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from dawnpatrol.cache.models import SODA_LAKE
from dawnpatrol.pipelines.openweather import ForecastItem, OpenWeatherProvider, item_to_sample
from dawnpatrol.utils.base import ProviderError

ITEM = {
    "dt": 1752494400,
    "main": {"temp": 20.0, "feels_like": 19.0, "pressure": 1012, "humidity": 30},
    "clouds": {"all": 40},
    "wind": {"speed": 5.0, "deg": 300, "gust": 8.0},
    "visibility": 10000,
    "pop": 0.35,
}

SAMPLE_PAYLOAD = {"cod": "200", "message": 0, "cnt": 2, "list": [ITEM, {**ITEM, "dt": 1752505200}]}


def fake_response(payload):
    response = MagicMock()
    response.status_code = 200
    response.text = json.dumps(payload)
    return response


class TestItemToSample:
    """Tests for item normalization."""

    def test_metric(self):
        """Metric items should be converted to canonical units."""
        sample = item_to_sample(ForecastItem.model_validate(ITEM), "metric")

        assert sample.timestamp == datetime(2025, 7, 14, 12, 0, tzinfo=timezone.utc)
        assert sample.temperature_f == pytest.approx(68.0)
        assert sample.wind_speed_mph == pytest.approx(11.18468)
        assert sample.precipitation_probability == pytest.approx(35.0)
        assert sample.cloud_cover == 40
        assert sample.visibility_mi == pytest.approx(6.21371, rel=1e-4)

    def test_imperial(self):
        """Imperial items should pass through."""
        sample = item_to_sample(ForecastItem.model_validate(ITEM), "imperial")
        assert sample.temperature_f == 20.0
        assert sample.wind_speed_mph == 5.0

    def test_standard_is_kelvin(self):
        """Standard units report Kelvin."""
        item = {**ITEM, "main": {**ITEM["main"], "temp": 293.15}}
        sample = item_to_sample(ForecastItem.model_validate(item), "standard")
        assert sample.temperature_f == pytest.approx(68.0)

    def test_missing_pop(self):
        """A missing pop should stay None."""
        item = {k: v for k, v in ITEM.items() if k != "pop"}
        assert item_to_sample(ForecastItem.model_validate(item)).precipitation_probability is None


class TestOpenWeatherProvider:
    """Tests for OpenWeatherProvider.fetch."""

    def test_is_fallback(self):
        """OpenWeather should not count as a primary source."""
        assert OpenWeatherProvider(api_key="k").primary is False

    def test_invalid_units(self):
        """Unknown unit systems should be rejected up front."""
        with pytest.raises(ValueError, match="Invalid units"):
            OpenWeatherProvider(api_key="k", units="furlongs")

    @patch("dawnpatrol.pipelines.http.requests.get")
    def test_fetch(self, mock_get):
        """Should send the key and return one sample per item."""
        mock_get.return_value = fake_response(SAMPLE_PAYLOAD)

        samples = OpenWeatherProvider(api_key="secret").fetch(SODA_LAKE)

        assert len(samples) == 2
        assert mock_get.call_args.kwargs["params"]["appid"] == "secret"

    @patch("dawnpatrol.pipelines.http.requests.get")
    def test_error_code(self, mock_get):
        """A non-200 cod should raise ProviderError."""
        mock_get.return_value = fake_response({"cod": "401", "list": []})

        with pytest.raises(ProviderError, match="cod=401"):
            OpenWeatherProvider(api_key="bad").fetch(SODA_LAKE)

    @patch("dawnpatrol.pipelines.http.requests.get")
    def test_malformed(self, mock_get):
        """A payload without a list should raise ProviderError."""
        mock_get.return_value = fake_response({"cod": "200"})

        with pytest.raises(ProviderError, match="malformed"):
            OpenWeatherProvider(api_key="k").fetch(SODA_LAKE)

    @patch("dawnpatrol.pipelines.http.requests.get")
    def test_empty_list(self, mock_get):
        """An empty forecast list should raise ProviderError."""
        mock_get.return_value = fake_response({"cod": "200", "list": []})

        with pytest.raises(ProviderError, match="empty"):
            OpenWeatherProvider(api_key="k").fetch(SODA_LAKE)
