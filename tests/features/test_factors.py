"""Tests for the five factor analyzers."""

from dataclasses import replace
from datetime import time, timedelta, timezone

import pytest

from conftest import TARGET_DAY, build_snapshot, local
from dawnpatrol.cache.models import (
    MORRISON,
    NEDERLAND,
    SODA_LAKE,
    AggregateSnapshot,
    LocationSeries,
    WeatherSample,
)
from dawnpatrol.features import (
    FactorKind,
    FactorResult,
    UpperAirProfile,
    analyze_precipitation,
    analyze_pressure,
    analyze_sky,
    analyze_temperature,
    analyze_wave,
)
from dawnpatrol.features.pressure import classify_trend
from dawnpatrol.features.wave import brunt_vaisala, froude_number, surface_score
from dawnpatrol.features.windows import (
    decision_day,
    nearest_sample,
    samples_in_window,
    samples_near_window,
)
from dawnpatrol.utils.config import PredictionConfig

CONFIG = PredictionConfig()


def snapshot_of(*series, fetched_hour=4):
    return AggregateSnapshot(series=tuple(series), fetched_at=local(TARGET_DAY, fetched_hour))


class TestFactorResult:
    """Tests for FactorResult."""

    def test_confidence_range(self):
        """Confidence outside 0-100 should be rejected."""
        with pytest.raises(ValueError):
            FactorResult(FactorKind.SKY, True, 50.0, 45.0, 101, "x")

    def test_absent(self):
        """absent() should produce a zero-confidence, unmet result."""
        result = FactorResult.absent(FactorKind.SKY, 45.0, "no data")
        assert result.meets is False
        assert result.value is None
        assert result.confidence == 0
        assert result.insufficient_data is True

    def test_dict_round_trip(self):
        """to_dict/from_dict should preserve every field."""
        result = FactorResult(FactorKind.PRESSURE, True, 3.0, 1.0, 85, "up", trend="rising")
        assert FactorResult.from_dict(result.to_dict()) == result

    def test_labels(self):
        """Every kind should have a human-readable label."""
        assert all(kind.label for kind in FactorKind)


class TestWindows:
    """Tests for local-time window helpers."""

    def test_window_inclusive(self):
        """Both window ends should be inclusive."""
        samples = build_snapshot().series[0].samples
        selected = samples_in_window(samples, TARGET_DAY, time(2, 0), time(5, 0), "America/Denver")
        assert [s.timestamp.hour for s in selected] == [2, 3, 4, 5]

    def test_window_uses_local_time(self):
        """UTC timestamps should be compared in local time."""
        sample = WeatherSample(timestamp=local(TARGET_DAY, 3).astimezone(timezone.utc))
        selected = samples_in_window([sample], TARGET_DAY, time(2, 0), time(5, 0), "America/Denver")
        assert selected == [sample]

    def test_samples_near_window(self):
        """Samples within max_gap of either window end should be kept."""
        samples = [WeatherSample(timestamp=local(TARGET_DAY, h)) for h in (0, 7, 9)]
        near = samples_near_window(
            samples, TARGET_DAY, time(2, 0), time(5, 0), "America/Denver", timedelta(hours=2)
        )
        assert [s.timestamp.hour for s in near] == [0, 7]

    def test_nearest_sample(self):
        """Nearest sample should respect max_gap."""
        samples = [WeatherSample(timestamp=local(TARGET_DAY, h)) for h in (1, 9)]
        target = local(TARGET_DAY, 5)
        assert nearest_sample(samples, target).timestamp.hour == 1
        assert nearest_sample(samples, target, max_gap=timedelta(hours=2)) is None
        assert nearest_sample([], target) is None

    def test_decision_day(self):
        """Before the window closes it is today; afterwards tomorrow."""
        assert decision_day(local(TARGET_DAY, 7, 59), time(8, 0), "America/Denver") == TARGET_DAY
        assert decision_day(local(TARGET_DAY, 8, 0), time(8, 0), "America/Denver") == TARGET_DAY + timedelta(days=1)


class TestPrecipitation:
    """Tests for analyze_precipitation."""

    def test_low_precipitation_meets(self, go_snapshot):
        """Low chance of rain should meet the threshold with confidence 85."""
        result = analyze_precipitation(go_snapshot, CONFIG, TARGET_DAY)
        assert result.meets is True
        assert result.value == 5.0
        assert result.confidence == 85

    def test_uses_maximum(self):
        """The worst location should decide."""
        dry = build_snapshot(precipitation=5.0)
        wet = build_snapshot(precipitation=60.0)
        snapshot = snapshot_of(dry.series[0], wet.series[2])
        result = analyze_precipitation(snapshot, CONFIG, TARGET_DAY)
        assert result.value == 60.0
        assert result.meets is False

    def test_threshold_inclusive(self):
        """Exactly the threshold should still meet."""
        result = analyze_precipitation(build_snapshot(precipitation=25.0), CONFIG, TARGET_DAY)
        assert result.meets is True

    def test_falls_back_outside_window(self):
        """Without samples in the window the day's samples are used."""
        result = analyze_precipitation(build_snapshot(), CONFIG, TARGET_DAY - timedelta(days=1))
        assert result.confidence == 85
        assert "no samples in dawn window" in result.detail

    def test_no_data(self, empty_snapshot):
        """No data should give an absent result."""
        result = analyze_precipitation(empty_snapshot, CONFIG, TARGET_DAY)
        assert result.confidence == 0
        assert result.meets is False
        assert result.insufficient_data is True


class TestSky:
    """Tests for analyze_sky."""

    def test_clear(self, go_snapshot):
        """20% cloud cover should be 80% clear at full confidence."""
        result = analyze_sky(go_snapshot, CONFIG, TARGET_DAY)
        assert result.value == pytest.approx(80.0)
        assert result.meets is True
        assert result.confidence == 80
        assert result.insufficient_data is False

    def test_overcast(self, poor_snapshot):
        """95% cloud cover should not meet."""
        result = analyze_sky(poor_snapshot, CONFIG, TARGET_DAY)
        assert result.value == pytest.approx(5.0)
        assert result.meets is False

    def test_confidence_scales_with_samples(self):
        """One in-window sample gives 60, two give 70."""
        one = LocationSeries(SODA_LAKE, (WeatherSample(timestamp=local(TARGET_DAY, 3), cloud_cover=10.0),))
        two = LocationSeries(SODA_LAKE, (
            WeatherSample(timestamp=local(TARGET_DAY, 3), cloud_cover=10.0),
            WeatherSample(timestamp=local(TARGET_DAY, 4), cloud_cover=30.0),
        ))
        assert analyze_sky(snapshot_of(one), CONFIG, TARGET_DAY).confidence == 60
        result = analyze_sky(snapshot_of(two), CONFIG, TARGET_DAY)
        assert result.confidence == 70
        assert result.value == pytest.approx(80.0)

    def test_estimate_outside_window(self):
        """Samples only outside the window give a labeled estimate at 40."""
        series = LocationSeries(SODA_LAKE, (
            WeatherSample(timestamp=local(TARGET_DAY, 8), cloud_cover=10.0),
            WeatherSample(timestamp=local(TARGET_DAY, 9), cloud_cover=10.0),
        ))
        result = analyze_sky(snapshot_of(series), CONFIG, TARGET_DAY)
        assert result.confidence == 40
        assert result.insufficient_data is True
        assert "Estimated" in result.detail

    def test_no_cloud_data(self, empty_snapshot):
        """No cloud data at all should give confidence 0."""
        assert analyze_sky(empty_snapshot, CONFIG, TARGET_DAY).confidence == 0


class TestPressure:
    """Tests for analyze_pressure."""

    def test_rising(self, go_snapshot):
        """A +3 hPa change over 12 h should meet with a rising trend."""
        result = analyze_pressure(go_snapshot, None, CONFIG, TARGET_DAY)
        assert result.value == pytest.approx(3.0)
        assert result.trend == "rising"
        assert result.meets is True
        assert result.confidence == 85

    def test_falling(self):
        """Falling pressure counts by magnitude."""
        result = analyze_pressure(build_snapshot(pressure_change=-2.0), None, CONFIG, TARGET_DAY)
        assert result.trend == "falling"
        assert result.value == pytest.approx(2.0)
        assert result.meets is True

    def test_stable(self, poor_snapshot):
        """A small change should be stable and not meet."""
        result = analyze_pressure(poor_snapshot, None, CONFIG, TARGET_DAY)
        assert result.trend == "stable"
        assert result.meets is False

    def test_short_span_lower_confidence(self):
        """Samples spanning less than half the lookback give 60."""
        samples = tuple(
            WeatherSample(timestamp=local(TARGET_DAY, h), pressure_hpa=1010.0 + h)
            for h in (3, 4, 5)
        )
        result = analyze_pressure(snapshot_of(LocationSeries(SODA_LAKE, samples)), None, CONFIG, TARGET_DAY)
        assert result.confidence == 60
        assert result.value == pytest.approx(2.0)
        assert result.insufficient_data is True

    def test_single_sample(self):
        """One sample cannot give a trend."""
        samples = (WeatherSample(timestamp=local(TARGET_DAY, 5), pressure_hpa=1010.0),)
        result = analyze_pressure(snapshot_of(LocationSeries(SODA_LAKE, samples)), None, CONFIG, TARGET_DAY)
        assert result.confidence == 20
        assert result.trend == "unknown"
        assert result.meets is False

    def test_previous_snapshot_fills_history(self):
        """History the current snapshot lacks should come from the previous one."""
        full = build_snapshot()
        soda = full.series[0]
        recent = LocationSeries(SODA_LAKE, tuple(s for s in soda.samples if s.timestamp >= local(TARGET_DAY, 4)))
        older = LocationSeries(SODA_LAKE, tuple(s for s in soda.samples if s.timestamp < local(TARGET_DAY, 4)))

        alone = analyze_pressure(snapshot_of(recent), None, CONFIG, TARGET_DAY)
        combined = analyze_pressure(snapshot_of(recent), snapshot_of(older), CONFIG, TARGET_DAY)

        assert alone.confidence == 60
        assert combined.confidence == 85
        assert combined.value == pytest.approx(3.0)

    def test_no_data(self, empty_snapshot):
        """No pressure data should give an absent result."""
        assert analyze_pressure(empty_snapshot, None, CONFIG, TARGET_DAY).confidence == 0

    def test_classify_trend(self):
        """Neutral band should be exclusive at its edges."""
        assert classify_trend(1.5, 1.0) == "rising"
        assert classify_trend(-1.5, 1.0) == "falling"
        assert classify_trend(1.0, 1.0) == "stable"


class TestTemperature:
    """Tests for analyze_temperature."""

    def test_differential(self, go_snapshot):
        """A 10F colder mountain should meet."""
        result = analyze_temperature(go_snapshot, CONFIG, TARGET_DAY)
        assert result.value == pytest.approx(10.0)
        assert result.meets is True
        assert result.confidence == 80
        assert result.trend == "mountain colder"

    def test_small_differential(self, poor_snapshot):
        """A 1F difference should not meet."""
        result = analyze_temperature(poor_snapshot, CONFIG, TARGET_DAY)
        assert result.meets is False

    def test_tunable_threshold(self, go_snapshot):
        """A higher threshold should change the outcome."""
        config = CONFIG.with_overrides(temperature_diff_min_f=12.0)
        assert analyze_temperature(go_snapshot, config, TARGET_DAY).meets is False

    def test_missing_mountain(self, go_snapshot):
        """Without mountain data confidence is 0."""
        snapshot = replace(go_snapshot, series=(go_snapshot.series[0], LocationSeries(NEDERLAND)))
        result = analyze_temperature(snapshot, CONFIG, TARGET_DAY)
        assert result.confidence == 0
        assert "mountain" in result.detail

    def test_loose_pair(self):
        """Samples far from the reference time lower confidence to 70."""
        valley = LocationSeries(MORRISON, (WeatherSample(timestamp=local(TARGET_DAY, 12), temperature_f=80.0),))
        mountain = LocationSeries(NEDERLAND, (WeatherSample(timestamp=local(TARGET_DAY, 12), temperature_f=65.0),))
        result = analyze_temperature(snapshot_of(valley, mountain), CONFIG, TARGET_DAY)
        assert result.confidence == 70
        assert result.meets is True


class TestWave:
    """Tests for analyze_wave."""

    def test_surface_only(self, go_snapshot):
        """Without upper-air data the score is surface-only at confidence 40."""
        result = analyze_wave(go_snapshot, CONFIG, TARGET_DAY)
        assert result.value == 50.0
        assert result.confidence == 40
        assert result.meets is False
        assert result.insufficient_data is True
        assert "no upper-air data" in result.detail

    def test_optimal_froude(self, go_snapshot):
        """An optimal Froude regime should score 100."""
        profile = UpperAirProfile(transport_wind_ms=10.0, lapse_rate_k_per_m=0.0065)
        result = analyze_wave(go_snapshot, CONFIG, TARGET_DAY, profile)
        assert result.value == 100.0
        assert result.confidence == 75
        assert result.meets is True
        assert result.trend == "strong"

    def test_neutral_profile(self, go_snapshot):
        """A neutral profile adds only amplitude and coupling points to the surface score."""
        profile = UpperAirProfile(transport_wind_ms=10.0, lapse_rate_k_per_m=0.0098)
        surface = analyze_wave(go_snapshot, CONFIG, TARGET_DAY)
        result = analyze_wave(go_snapshot, CONFIG, TARGET_DAY, profile)
        assert "Fr undefined" in result.detail
        assert result.value == 60.0
        assert result.value >= surface.value

    def test_profile_adds_to_surface_points(self):
        """A broad-regime Froude score is added to the surface score, not substituted."""
        snapshot = build_snapshot(mountain_direction=90.0)
        profile = UpperAirProfile(transport_wind_ms=5.0, lapse_rate_k_per_m=0.0065)
        surface = analyze_wave(snapshot, CONFIG, TARGET_DAY)
        result = analyze_wave(snapshot, CONFIG, TARGET_DAY, profile)
        assert surface.value == 30.0
        assert "mixed waves" in result.detail
        assert result.value == 80.0
        assert result.trend == "strong"

    def test_no_mountain_wind(self, empty_snapshot):
        """No mountain wind data should be explicitly insufficient."""
        result = analyze_wave(empty_snapshot, CONFIG, TARGET_DAY)
        assert result.confidence == 0
        assert result.insufficient_data is True
        assert "Insufficient data" in result.detail

    def test_surface_score(self):
        """Each surface indicator should add its points."""
        sample = WeatherSample(
            timestamp=local(TARGET_DAY, 5),
            wind_speed_mph=10.0,
            wind_direction=280.0,
            temperature_f=35.0,
        )
        score, notes = surface_score(sample)
        assert score == 65
        assert len(notes) == 3

    def test_froude_helpers(self):
        """Brunt-Vaisala should be zero for unstable air."""
        assert brunt_vaisala(0.012) == 0.0
        assert froude_number(10.0, 0.0, 2000.0) is None
        assert froude_number(10.0, 0.01, 2000.0) == pytest.approx(0.5)


class TestIndependence:
    """Analyzers should not depend on each other or on call order."""

    def test_order_insensitive(self, go_snapshot):
        """Calling analyzers in any order should give equal results."""
        first = [
            analyze_precipitation(go_snapshot, CONFIG, TARGET_DAY),
            analyze_sky(go_snapshot, CONFIG, TARGET_DAY),
        ]
        second = [
            analyze_sky(go_snapshot, CONFIG, TARGET_DAY),
            analyze_precipitation(go_snapshot, CONFIG, TARGET_DAY),
        ]
        assert first == list(reversed(second))


class TestForecastHorizon:
    """Days the forecast does not reach should be absent, not borrowed from other days."""

    FAR_DAY = TARGET_DAY + timedelta(days=6)

    def test_precipitation_absent(self, go_snapshot):
        """No samples on the day gives confidence 0."""
        result = analyze_precipitation(go_snapshot, CONFIG, self.FAR_DAY)
        assert result.confidence == 0
        assert result.value is None
        assert self.FAR_DAY.isoformat() in result.detail

    def test_sky_absent(self, go_snapshot):
        """No cloud data near the pre-dawn window gives confidence 0."""
        result = analyze_sky(go_snapshot, CONFIG, self.FAR_DAY)
        assert result.confidence == 0
        assert result.insufficient_data is True

    def test_pressure_absent(self, go_snapshot):
        """A pressure series ending days before the window gives confidence 0."""
        result = analyze_pressure(go_snapshot, None, CONFIG, self.FAR_DAY)
        assert result.confidence == 0
        assert result.meets is False

    def test_temperature_absent(self, go_snapshot):
        """Temperatures far from the reference time are not paired."""
        result = analyze_temperature(go_snapshot, CONFIG, self.FAR_DAY)
        assert result.confidence == 0

    def test_wave_absent(self, go_snapshot):
        """Mountain wind far from the pre-dawn window is not scored."""
        result = analyze_wave(go_snapshot, CONFIG, self.FAR_DAY)
        assert result.confidence == 0
        assert "Insufficient data" in result.detail

    def test_next_evening_still_covered(self):
        """Tomorrow is still scored when the forecast ends within the gap."""
        day = TARGET_DAY + timedelta(days=1)
        config = CONFIG.with_overrides(max_sample_gap_hours=24.0)
        result = analyze_temperature(build_snapshot(), config, day)
        assert result.confidence == 70

    def test_gap_validated(self):
        """A non-positive gap is a configuration error."""
        with pytest.raises(ValueError):
            PredictionConfig(max_sample_gap_hours=0)
