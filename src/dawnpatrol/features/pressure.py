"""Pressure-change factor.

A building or falling pressure gradient over the 12 hours before dawn
indicates synoptic support for (or against) the drainage flow. The change is
measured at the primary valley location; history missing from the current
snapshot is taken from the previous one.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from dawnpatrol.cache.models import AggregateSnapshot, LocationRole, WeatherSample
from dawnpatrol.features.base import FactorKind, FactorResult
from dawnpatrol.features.windows import local_datetime
from dawnpatrol.utils.config import PredictionConfig

logger = logging.getLogger(__name__)

SPANNING_CONFIDENCE = 85
SHORT_SPAN_CONFIDENCE = 60
SINGLE_SAMPLE_CONFIDENCE = 20


def classify_trend(change: float, neutral_band: float) -> str:
    """Label a pressure change as rising, falling or stable."""
    if change > neutral_band:
        return "rising"
    if change < -neutral_band:
        return "falling"
    return "stable"


def _pressure_history(
    snapshot: AggregateSnapshot,
    previous: Optional[AggregateSnapshot],
) -> list[WeatherSample]:
    """Primary-location pressure samples, current snapshot winning on overlap."""
    history: dict = {}
    for snap in (previous, snapshot):
        if snap is None:
            continue
        series = snap.primary(LocationRole.VALLEY)
        if series is None:
            continue
        for s in series.samples:
            if s.pressure_hpa is not None:
                history[s.timestamp] = s
    return sorted(history.values(), key=lambda s: s.timestamp)


def analyze_pressure(
    snapshot: AggregateSnapshot,
    previous: Optional[AggregateSnapshot],
    config: PredictionConfig,
    day: date,
) -> FactorResult:
    """Score the pressure change leading up to the dawn window of day.

    The reference time is the start of the decision window, or the latest
    sample if the forecast stops short of it by no more than
    config.max_sample_gap_hours; a forecast ending earlier is absent data.
    The change compares the sample at the reference time with the earliest
    sample in the lookback window.

    Args:
        snapshot: Current aggregate snapshot
        previous: Previous snapshot, used for history the current one lacks
        config: Prediction thresholds
        day: Local calendar day being predicted

    Returns:
        FactorResult with the absolute change (hPa) as value and a trend label
    """
    threshold = config.pressure_change_min_hpa
    history = _pressure_history(snapshot, previous)

    if not history:
        return FactorResult.absent(
            FactorKind.PRESSURE, threshold, "No pressure data at primary location"
        )

    window_start = local_datetime(day, config.decision_start, config.timezone)
    if window_start - history[-1].timestamp > timedelta(hours=config.max_sample_gap_hours):
        return FactorResult.absent(
            FactorKind.PRESSURE,
            threshold,
            f"No pressure forecast near {config.decision_start:%H:%M} on {day.isoformat()}",
        )
    reference = min(window_start, history[-1].timestamp)
    lookback = timedelta(hours=config.pressure_lookback_hours)
    in_range = [s for s in history if reference - lookback <= s.timestamp <= reference]

    if len(in_range) < 2:
        return FactorResult(
            kind=FactorKind.PRESSURE,
            meets=False,
            value=None,
            threshold=threshold,
            confidence=SINGLE_SAMPLE_CONFIDENCE if in_range else 0,
            detail=(
                f"Only {len(in_range)} pressure sample(s) in the "
                f"{config.pressure_lookback_hours}h before {reference:%H:%M}"
            ),
            trend="unknown",
            insufficient_data=True,
        )

    earliest, latest = in_range[0], in_range[-1]
    change = latest.pressure_hpa - earliest.pressure_hpa
    trend = classify_trend(change, config.pressure_neutral_band_hpa)
    span = latest.timestamp - earliest.timestamp
    spans_window = span >= lookback / 2
    confidence = SPANNING_CONFIDENCE if spans_window else SHORT_SPAN_CONFIDENCE
    magnitude = abs(change)
    meets = magnitude >= threshold

    hours = span.total_seconds() / 3600
    detail = (
        f"Pressure {trend} {change:+.1f} hPa over {hours:.0f}h "
        f"({earliest.pressure_hpa:.1f} -> {latest.pressure_hpa:.1f} hPa)"
    )
    logger.debug(f"pressure: {detail}")

    return FactorResult(
        kind=FactorKind.PRESSURE,
        meets=meets,
        value=magnitude,
        threshold=threshold,
        confidence=confidence,
        detail=detail,
        trend=trend,
        insufficient_data=not spans_window,
    )
