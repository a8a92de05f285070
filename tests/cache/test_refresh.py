"""Tests for scheduled refresh and verification runs."""

import sys
from datetime import timedelta, timezone

import pandas as pd
import pytest

from conftest import TARGET_DAY, build_snapshot, local
from dawnpatrol.cache.models import DEFAULT_LOCATIONS, WindSample
from dawnpatrol.cache.predictor import FixedClock, PredictionLifecycle
from dawnpatrol.cache.refresh import (
    RefreshResult,
    build_sensor,
    export_verifications,
    main,
    next_refresh_time,
    run_refresh,
    run_verification,
)
from dawnpatrol.pipelines.ecowitt import EcowittSensor
from dawnpatrol.pipelines.windalert import WindAlertSensor
from dawnpatrol.utils.base import ProviderError, SensorProvider


class FakeAggregator:
    """Aggregator returning a fixed snapshot."""

    def __init__(self, snapshot):
        self.locations = list(DEFAULT_LOCATIONS)
        self.snapshot = snapshot

    def fetch_snapshot(self):
        return self.snapshot


class FakeSensor(SensorProvider):
    """Sensor returning canned samples or raising."""

    name = "fake"

    def __init__(self, speed=18.0, error=None):
        self.speed = speed
        self.error = error
        self.calls = []

    def fetch_history(self, start, end=None):
        self.calls.append((start, end))
        if self.error is not None:
            raise self.error
        return [
            WindSample(timestamp=start + timedelta(minutes=5 * i), speed_mph=self.speed, direction=310.0)
            for i in range(25)
        ]


@pytest.fixture
def clock():
    return FixedClock(local(TARGET_DAY, 9))


@pytest.fixture
def frozen_lifecycle(temp_store, clock):
    """Lifecycle whose GO prediction for TARGET_DAY is frozen in the store."""
    clock.set(local(TARGET_DAY, 5))
    lifecycle = PredictionLifecycle(clock=clock, store=temp_store)
    lifecycle.update_snapshot(build_snapshot())
    clock.set(local(TARGET_DAY, 8, 15))
    lifecycle.get_todays_prediction()
    return lifecycle


class TestNextRefreshTime:
    """Tests for next_refresh_time."""

    def test_next_tick(self):
        """The next half-hour tick follows now."""
        assert next_refresh_time(local(TARGET_DAY, 4, 10)) == local(TARGET_DAY, 4, 30)

    def test_strictly_after(self):
        """A time on a tick schedules the following tick."""
        assert next_refresh_time(local(TARGET_DAY, 4, 30)) == local(TARGET_DAY, 5)

    def test_evening_forced(self):
        """The evening refresh runs even between ticks."""
        now = local(TARGET_DAY, 17, 56)
        assert next_refresh_time(now, interval=timedelta(minutes=25)) == local(TARGET_DAY, 18)

    def test_utc_input(self):
        """UTC instants are scheduled on the local grid."""
        now = local(TARGET_DAY, 4, 10).astimezone(timezone.utc)
        assert next_refresh_time(now) == local(TARGET_DAY, 4, 30)


class TestRunRefresh:
    """Tests for run_refresh."""

    def test_full_success(self, temp_store):
        """All locations fetched should log success and return today's call."""
        lifecycle = PredictionLifecycle(clock=FixedClock(local(TARGET_DAY, 4)), store=temp_store)

        result = run_refresh(temp_store, FakeAggregator(build_snapshot()), lifecycle)

        assert result.success == 3
        assert result.failed == 0
        assert result.recommendation == "GO"
        assert result.reliability == "high"
        fetch = temp_store.get_recent_fetches(1)[0]
        assert fetch.source == "forecast"
        assert fetch.status == "success"
        assert temp_store.get_snapshot() is not None

    def test_total_failure(self, temp_store, empty_snapshot):
        """No data anywhere should log an error but still predict."""
        lifecycle = PredictionLifecycle(clock=FixedClock(local(TARGET_DAY, 4)), store=temp_store)

        result = run_refresh(temp_store, FakeAggregator(empty_snapshot), lifecycle)

        assert result.success == 0
        assert result.recommendation == "MARGINAL"
        assert temp_store.get_recent_fetches(1)[0].status == "error"

    def test_refresh_after_window_freezes(self, temp_store):
        """A refresh after the decision window freezes today's prediction."""
        lifecycle = PredictionLifecycle(clock=FixedClock(local(TARGET_DAY, 9)), store=temp_store)
        run_refresh(temp_store, FakeAggregator(build_snapshot()), lifecycle)
        assert temp_store.get_frozen_prediction(TARGET_DAY) is not None


class TestRefreshResult:
    """Tests for RefreshResult."""

    def test_success_rate(self):
        """Success rate is the share of locations fetched."""
        assert RefreshResult(3, 2, 1, 0, 10).success_rate == pytest.approx(200 / 3)
        assert RefreshResult(0, 0, 0, 0, 10).success_rate == 0.0

    def test_str(self):
        """String form names the call."""
        result = RefreshResult(3, 3, 0, 0, 10, "high", "GO", 88)
        assert "GO 88%" in str(result)


class TestRunVerification:
    """Tests for run_verification."""

    def test_verifies_frozen(self, temp_store, frozen_lifecycle):
        """Good wind on a GO day should be an excellent call."""
        sensor = FakeSensor(speed=18.0)

        record = run_verification(temp_store, sensor, frozen_lifecycle, TARGET_DAY)

        assert record.outcome == "excellent"
        assert temp_store.get_verification(TARGET_DAY) == record
        start, end = sensor.calls[0]
        assert start == local(TARGET_DAY, 6)
        assert end == local(TARGET_DAY, 8)

    def test_no_frozen_prediction(self, temp_store, clock):
        """Nothing frozen means nothing to verify."""
        lifecycle = PredictionLifecycle(clock=clock, store=temp_store)
        sensor = FakeSensor()
        assert run_verification(temp_store, sensor, lifecycle, TARGET_DAY) is None
        assert sensor.calls == []

    def test_sensor_failure(self, temp_store, frozen_lifecycle):
        """A sensor error is logged and leaves the day unverified."""
        sensor = FakeSensor(error=ProviderError("fake", "offline"))

        assert run_verification(temp_store, sensor, frozen_lifecycle, TARGET_DAY) is None
        assert temp_store.get_verification(TARGET_DAY) is None
        assert temp_store.get_recent_fetches(1)[0].status == "error"

    def test_already_verified(self, temp_store, frozen_lifecycle):
        """A verified day returns the stored record without fetching."""
        first = run_verification(temp_store, FakeSensor(speed=18.0), frozen_lifecycle, TARGET_DAY)
        sensor = FakeSensor(speed=2.0)

        assert run_verification(temp_store, sensor, frozen_lifecycle, TARGET_DAY) == first
        assert sensor.calls == []

    def test_window_still_open(self, temp_store, frozen_lifecycle, clock):
        """Running before 08:00 leaves the day unverified."""
        clock.set(local(TARGET_DAY, 7, 30))

        assert run_verification(temp_store, FakeSensor(speed=18.0), frozen_lifecycle, TARGET_DAY) is None
        assert temp_store.get_verification(TARGET_DAY) is None


class TestExportVerifications:
    """Tests for export_verifications."""

    def test_writes_csv(self, temp_store, frozen_lifecycle, tmp_path):
        """Every verification becomes one CSV row."""
        run_verification(temp_store, FakeSensor(speed=18.0), frozen_lifecycle, TARGET_DAY)

        path = export_verifications(temp_store, tmp_path / "verifications.csv")

        df = pd.read_csv(path)
        assert len(df) == 1
        assert df.loc[0, "outcome"] == "excellent"
        assert bool(df.loc[0, "correct"]) is True

    def test_empty(self, temp_store, tmp_path):
        """No verifications still writes a header."""
        path = export_verifications(temp_store, tmp_path / "empty.csv")
        assert "outcome" in path.read_text()


class TestBuildSensor:
    """Tests for build_sensor."""

    def test_ecowitt_preferred(self):
        """Complete Ecowitt credentials select the Ecowitt gateway."""
        sensor = build_sensor({
            "ECOWITT_APPLICATION_KEY": "app",
            "ECOWITT_API_KEY": "key",
            "ECOWITT_MAC": "AA:BB",
            "WINDALERT_TOKEN": "tok",
        })
        assert isinstance(sensor, EcowittSensor)

    def test_windalert(self):
        """A WindAlert token alone selects WindAlert."""
        sensor = build_sensor({"ECOWITT_API_KEY": "key", "WINDALERT_TOKEN": "tok"})
        assert isinstance(sensor, WindAlertSensor)
        assert sensor.token == "tok"

    def test_none(self):
        """No sensor credentials give no sensor."""
        assert build_sensor({}) is None


class TestMain:
    """Tests for the CLI entry point."""

    def test_status(self, tmp_path, monkeypatch, capsys):
        """--status prints store statistics."""
        db = tmp_path / "cli.duckdb"
        monkeypatch.setattr(sys, "argv", ["refresh", "--status", "--db", str(db), "-q"])

        assert main() == 0

        out = capsys.readouterr().out
        assert "Dawn Patrol Store Status" in out
        assert "Frozen predictions: 0" in out

    def test_verify_without_sensor(self, tmp_path, monkeypatch):
        """--verify without sensor credentials fails."""
        for key in ("ECOWITT_APPLICATION_KEY", "ECOWITT_API_KEY", "ECOWITT_MAC", "WINDALERT_TOKEN"):
            monkeypatch.delenv(f"DAWNPATROL_{key}", raising=False)
        db = tmp_path / "cli.duckdb"
        monkeypatch.setattr(sys, "argv", ["refresh", "--verify", "2025-07-14", "--db", str(db), "-q"])

        assert main() == 1

    def test_invalid_date(self, monkeypatch):
        """An unparseable --verify date is a usage error."""
        monkeypatch.setattr(sys, "argv", ["refresh", "--verify", "yesterday-ish"])
        with pytest.raises(SystemExit):
            main()
