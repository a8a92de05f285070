"""Tests for anemometer sensor providers (Ecowitt and WindAlert)."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from dawnpatrol.pipelines.ecowitt import EcowittSensor, HistoryResponse, parse_history
from dawnpatrol.pipelines.windalert import GraphResponse, WindAlertSensor, parse_graph
from dawnpatrol.utils.base import ProviderError

# 2025-07-14 06:00 and 06:05 MDT
T1 = 1752494400
T2 = T1 + 300

START = datetime(2025, 7, 14, 11, 0, tzinfo=timezone.utc)
END = datetime(2025, 7, 14, 14, 0, tzinfo=timezone.utc)

ECOWITT_PAYLOAD = {
    "code": 0,
    "msg": "success",
    "time": str(T2),
    "data": {
        "wind": {
            "wind_speed": {"unit": "m/s", "list": {str(T1): "6.7", str(T2): "7.2"}},
            "wind_gust": {"unit": "m/s", "list": {str(T1): "9.0", str(T2): ""}},
            "wind_direction": {"unit": "º", "list": {str(T1): "310", str(T2): "305"}},
        }
    },
}

WINDALERT_PAYLOAD = {
    "wind_avg_data": [[T2 * 1000, 24.0], [T1 * 1000, 20.0], [(T1 - 7200) * 1000, 5.0]],
    "wind_gust_data": [[T1 * 1000, 30.0]],
    "wind_dir_data": [[T1 * 1000, 315], [T2 * 1000, None]],
}


def fake_response(payload=None, text=None):
    response = MagicMock()
    response.status_code = 200
    response.text = text if text is not None else json.dumps(payload)
    return response


class TestEcowittParse:
    """Tests for Ecowitt history parsing."""

    def test_parse(self):
        """Channels should be joined on timestamp and converted to mph."""
        samples = parse_history(HistoryResponse.model_validate(ECOWITT_PAYLOAD))

        assert len(samples) == 2
        first, second = samples
        assert first.timestamp == datetime.fromtimestamp(T1, tz=timezone.utc)
        assert first.speed_mph == pytest.approx(6.7 * 2.236936)
        assert first.gust_mph == pytest.approx(9.0 * 2.236936)
        assert first.direction == 310.0
        assert second.gust_mph is None

    def test_empty_data_list(self):
        """Ecowitt answers an empty range with an empty list."""
        payload = {"code": 0, "msg": "success", "data": []}
        assert parse_history(HistoryResponse.model_validate(payload)) == []


class TestEcowittSensor:
    """Tests for EcowittSensor.fetch_history."""

    def make_sensor(self):
        return EcowittSensor(application_key="app", api_key="api", mac="AA:BB")

    @patch("dawnpatrol.pipelines.http.requests.get")
    def test_fetch_history(self, mock_get):
        """Should request the range in m/s and return window samples."""
        mock_get.return_value = fake_response(ECOWITT_PAYLOAD)

        samples = self.make_sensor().fetch_history(START, END)

        assert len(samples) == 2
        params = mock_get.call_args.kwargs["params"]
        assert params["mac"] == "AA:BB"
        assert params["wind_speed_unitid"] == 6
        assert params["start_date"] == "2025-07-14 11:00:00"

    @patch("dawnpatrol.pipelines.http.requests.get")
    def test_filters_to_range(self, mock_get):
        """Samples outside start/end should be dropped."""
        mock_get.return_value = fake_response(ECOWITT_PAYLOAD)

        samples = self.make_sensor().fetch_history(START, START + timedelta(hours=1, minutes=2))

        assert len(samples) == 1

    @patch("dawnpatrol.pipelines.http.requests.get")
    def test_api_error_code(self, mock_get):
        """A non-zero code should raise ProviderError even on HTTP 200."""
        mock_get.return_value = fake_response({"code": 40010, "msg": "Illegal Application_Key"})

        with pytest.raises(ProviderError, match="40010"):
            self.make_sensor().fetch_history(START, END)

    @patch("dawnpatrol.pipelines.http.requests.get")
    def test_unknown_unit(self, mock_get):
        """Unknown speed units should raise ProviderError."""
        payload = json.loads(json.dumps(ECOWITT_PAYLOAD))
        payload["data"]["wind"]["wind_speed"]["unit"] = "bft"
        mock_get.return_value = fake_response(payload)

        with pytest.raises(ProviderError, match="unusable"):
            self.make_sensor().fetch_history(START, END)


class TestWindAlertParse:
    """Tests for WindAlert graph parsing."""

    def test_parse_sorts_and_converts(self):
        """Samples should be time-ordered and converted from kph."""
        samples = parse_graph(GraphResponse.model_validate(WINDALERT_PAYLOAD))

        assert len(samples) == 3
        assert [s.timestamp for s in samples] == sorted(s.timestamp for s in samples)
        at_t1 = samples[1]
        assert at_t1.speed_mph == pytest.approx(20.0 * 0.621371)
        assert at_t1.gust_mph == pytest.approx(30.0 * 0.621371)
        assert at_t1.direction == 315.0
        assert samples[2].direction is None

    def test_missing_average(self):
        """A payload without average wind should raise."""
        with pytest.raises(ValueError, match="wind_avg_data"):
            parse_graph(GraphResponse.model_validate({}))


class TestWindAlertSensor:
    """Tests for WindAlertSensor.fetch_history."""

    @patch("dawnpatrol.pipelines.http.requests.get")
    def test_fetch_jsonp(self, mock_get):
        """JSONP bodies should be unwrapped and filtered to the range."""
        body = f"jQuery17209({json.dumps(WINDALERT_PAYLOAD)});"
        mock_get.return_value = fake_response(text=body)

        samples = WindAlertSensor(token="tok").fetch_history(START, END)

        assert len(samples) == 2
        params = mock_get.call_args.kwargs["params"]
        assert params["wf_token"] == "tok"
        assert params["units_wind"] == "kph"
        assert params["spot_id"] == 149264

    @patch("dawnpatrol.pipelines.http.requests.get")
    def test_malformed(self, mock_get):
        """An empty graph should raise ProviderError."""
        mock_get.return_value = fake_response({"wind_avg_data": []})

        with pytest.raises(ProviderError, match="malformed graph"):
            WindAlertSensor(token="tok").fetch_history(START, END)
