"""Verification of frozen predictions against observed sensor wind.

After the decision window closes, the frozen prediction for the day is
compared with what the lake sensor actually measured during that window.
The average speed (never the gust peak) is classified as good, marginal or
poor, and crossed with the predicted probability band through a fixed
decision matrix. Every cell yields a verdict and a recalibration hint.

Example:
    >>> engine = VerificationEngine(store)
    >>> record = engine.verify(prediction, sensor_samples)
    >>> record.outcome
    'excellent'
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, Sequence

import numpy as np

from dawnpatrol.cache.models import WindSample
from dawnpatrol.features.windows import local_datetime, samples_in_window
from dawnpatrol.utils.config import PredictionConfig
from dawnpatrol.utils.geo import circular_mean, degrees_to_compass, within_sector
from dawnpatrol.utils.units import to_datetime, to_iso_time

logger = logging.getLogger(__name__)

WIND_CLASSES = ("good", "marginal", "poor")
PROBABILITY_BANDS = ("high", "moderate", "low")

# Outcomes counted as a correct call
CORRECT_OUTCOMES = {"excellent", "correct_marginal", "correct_skip"}

# (probability band, actual wind class) -> (outcome, verdict, recalibration)
DECISION_MATRIX: dict[tuple[str, str], tuple[str, str, str]] = {
    ("high", "good"): (
        "excellent",
        "Excellent call: strong katabatic flow arrived as predicted.",
        "No change; current thresholds are working.",
    ),
    ("high", "marginal"): (
        "partial_overestimate",
        "Partially correct: wind arrived but stayed below session strength.",
        "Slightly lower the bonus multipliers or raise the temperature differential threshold.",
    ),
    ("high", "poor"): (
        "false_positive",
        "False positive: high probability but the wind never developed.",
        "Review the favorable factors; tighten sky and precipitation thresholds.",
    ),
    ("moderate", "good"): (
        "missed_upside",
        "Missed upside: good wind on a moderate call.",
        "Consider raising weights of the factors that were favorable.",
    ),
    ("moderate", "marginal"): (
        "correct_marginal",
        "Correct marginal call: conditions were borderline as predicted.",
        "No change; moderate band matches marginal outcomes.",
    ),
    ("moderate", "poor"): (
        "partial_overestimate",
        "Partially correct: moderate call but the wind stayed poor.",
        "Check pressure and wave factors for optimistic readings.",
    ),
    ("low", "good"): (
        "major_miss",
        "Major miss: good katabatic wind on a low-probability call.",
        "Loosen the unfavorable factors' thresholds; check data sources for gaps.",
    ),
    ("low", "marginal"): (
        "partial_underestimate",
        "Partially correct: low call but marginal wind developed.",
        "Consider lowering the clear-sky or temperature differential threshold slightly.",
    ),
    ("low", "poor"): (
        "correct_skip",
        "Correct skip: low probability and no rideable wind.",
        "No change; skip logic is working.",
    ),
}


def classify_wind(average_speed: float, config: Optional[PredictionConfig] = None) -> str:
    """Classify sustained (average) wind: good, marginal or poor."""
    config = config or PredictionConfig()
    if average_speed >= config.good_wind_mph:
        return "good"
    if average_speed >= config.marginal_wind_mph:
        return "marginal"
    return "poor"


def probability_band(probability: float, config: Optional[PredictionConfig] = None) -> str:
    """Band a predicted probability: high, moderate or low."""
    config = config or PredictionConfig()
    if probability >= config.high_probability:
        return "high"
    if probability >= config.low_probability:
        return "moderate"
    return "low"


@dataclass(frozen=True)
class VerificationRecord:
    """Frozen prediction reconciled with the observed dawn wind.

    Attributes:
        target_date: Local date of the verified dawn
        predicted_probability: Frozen probability
        predicted_confidence: Frozen confidence
        recommendation: Frozen recommendation value
        favorable_factors: Factor kinds that were favorable in the prediction
        average_speed: Mean sensor speed in the decision window (mph)
        peak_speed: Highest sustained or gust reading (mph), informational
        average_direction: Circular mean direction, if any
        sample_count: Sensor samples in the window
        good_wind_pct: Percent of samples at or above the good threshold
        katabatic_consistency: Percent of samples blowing downslope
        wind_class: good / marginal / poor
        probability_band: high / moderate / low
        outcome: Decision matrix outcome
        verdict: Qualitative verdict
        recalibration: One-line recalibration suggestion
        factor_notes: Per-factor review notes
        verified_at: When the record was created
    """

    target_date: date
    predicted_probability: int
    predicted_confidence: int
    recommendation: str
    favorable_factors: tuple[str, ...]
    average_speed: float
    peak_speed: float
    average_direction: Optional[float]
    sample_count: int
    good_wind_pct: float
    katabatic_consistency: float
    wind_class: str
    probability_band: str
    outcome: str
    verdict: str
    recalibration: str
    factor_notes: tuple[str, ...] = field(default=())
    verified_at: Optional[datetime] = None

    @property
    def is_correct(self) -> bool:
        return self.outcome in CORRECT_OUTCOMES

    @property
    def is_false_positive(self) -> bool:
        return self.outcome == "false_positive"

    @property
    def is_false_negative(self) -> bool:
        return self.outcome == "major_miss"

    @property
    def actual_good(self) -> bool:
        return self.wind_class == "good"

    def __str__(self) -> str:
        return (
            f"{self.target_date}: predicted {self.predicted_probability}% "
            f"({self.recommendation}), actual {self.average_speed:.1f} mph "
            f"({self.wind_class}) -> {self.outcome}"
        )

    def to_dict(self) -> dict:
        return {
            "target_date": self.target_date.isoformat(),
            "predicted_probability": self.predicted_probability,
            "predicted_confidence": self.predicted_confidence,
            "recommendation": self.recommendation,
            "favorable_factors": list(self.favorable_factors),
            "average_speed": self.average_speed,
            "peak_speed": self.peak_speed,
            "average_direction": self.average_direction,
            "sample_count": self.sample_count,
            "good_wind_pct": self.good_wind_pct,
            "katabatic_consistency": self.katabatic_consistency,
            "wind_class": self.wind_class,
            "probability_band": self.probability_band,
            "outcome": self.outcome,
            "verdict": self.verdict,
            "recalibration": self.recalibration,
            "factor_notes": list(self.factor_notes),
            "verified_at": to_iso_time(self.verified_at) if self.verified_at else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "VerificationRecord":
        return cls(
            target_date=date.fromisoformat(d["target_date"]),
            predicted_probability=int(d["predicted_probability"]),
            predicted_confidence=int(d["predicted_confidence"]),
            recommendation=d["recommendation"],
            favorable_factors=tuple(d.get("favorable_factors", [])),
            average_speed=float(d["average_speed"]),
            peak_speed=float(d["peak_speed"]),
            average_direction=d.get("average_direction"),
            sample_count=int(d["sample_count"]),
            good_wind_pct=float(d["good_wind_pct"]),
            katabatic_consistency=float(d["katabatic_consistency"]),
            wind_class=d["wind_class"],
            probability_band=d["probability_band"],
            outcome=d["outcome"],
            verdict=d["verdict"],
            recalibration=d["recalibration"],
            factor_notes=tuple(d.get("factor_notes", [])),
            verified_at=to_datetime(d["verified_at"]) if d.get("verified_at") else None,
        )


class VerificationEngine:
    """Reconcile frozen predictions with sensor observations.

    Args:
        store: Optional persistence with get_verification/store_verification.
            Without one, records are returned but not kept.
        config: Thresholds and the decision window
    """

    def __init__(self, store=None, config: Optional[PredictionConfig] = None):
        self.store = store
        self.config = config or PredictionConfig()

    def window_samples(self, samples: Sequence[WindSample], target_date: date) -> list[WindSample]:
        """Sensor samples inside the decision window of target_date."""
        cfg = self.config
        return samples_in_window(
            samples, target_date, cfg.decision_start, cfg.decision_end, cfg.timezone
        )

    def review_factors(self, prediction, wind_class: str) -> list[str]:
        """Notes on factors the observed wind contradicted."""
        notes = []
        for kind, factor in prediction.factors.items():
            if factor.meets and wind_class == "poor":
                notes.append(f"{kind.label} was favorable but the wind stayed poor")
            elif not factor.meets and wind_class == "good":
                notes.append(f"{kind.label} was unfavorable yet the wind was good")
            if factor.insufficient_data:
                notes.append(f"{kind.label} had insufficient data (confidence {factor.confidence}%)")
        return notes

    def verify(
        self,
        prediction,
        samples: Sequence[WindSample],
        target_date: Optional[date] = None,
        verified_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Optional[VerificationRecord]:
        """Verify a frozen prediction against the day's sensor samples.

        Args:
            prediction: The frozen Prediction for the day
            samples: Sensor wind samples (any range; filtered to the window)
            target_date: Day to verify (defaults to prediction.target_date)
            verified_at: Timestamp recorded on the record (default: now)
            now: Current time (default: wall clock)

        Returns:
            The stored VerificationRecord, the existing one if the day was
            already verified, or None when the window has no sensor samples
            or has not closed yet.
        """
        cfg = self.config
        target_date = target_date or prediction.target_date
        now = now or datetime.now(timezone.utc)

        window_end = local_datetime(target_date, cfg.decision_end, cfg.timezone)
        if now < window_end:
            logger.warning(f"Decision window for {target_date} closes at {window_end:%H:%M}; not verifying yet")
            return None

        if self.store is not None:
            existing = self.store.get_verification(target_date)
            if existing is not None:
                logger.info(f"{target_date} already verified; returning stored record")
                return existing

        window = self.window_samples(samples, target_date)
        if not window:
            logger.warning(f"No sensor samples in the decision window for {target_date}; not verifying")
            return None

        speeds = np.array([s.speed_mph for s in window], dtype=float)
        peaks = [s.gust_mph for s in window if s.gust_mph is not None] + list(speeds)
        average_speed = float(speeds.mean())
        directions = [s.direction for s in window if s.direction is not None]
        average_direction = circular_mean(directions)

        good_pct = float((speeds >= cfg.good_wind_mph).mean() * 100)
        if directions:
            downslope = sum(
                1 for d in directions
                if within_sector(d, cfg.downslope_direction, cfg.downslope_range)
            )
            katabatic_consistency = downslope / len(directions) * 100
        else:
            katabatic_consistency = 0.0

        wind_class = classify_wind(average_speed, cfg)
        band = probability_band(prediction.probability, cfg)
        outcome, verdict, recalibration = DECISION_MATRIX[(band, wind_class)]

        direction_text = (
            f"{average_direction:.0f} deg {degrees_to_compass(average_direction)}"
            if average_direction is not None else "unknown direction"
        )
        logger.info(
            f"Verified {target_date}: {prediction.probability}% ({band}) vs "
            f"{average_speed:.1f} mph {direction_text} ({wind_class}) -> {outcome}"
        )

        record = VerificationRecord(
            target_date=target_date,
            predicted_probability=prediction.probability,
            predicted_confidence=prediction.confidence,
            recommendation=prediction.recommendation.value,
            favorable_factors=tuple(k.value for k in prediction.favorable_factors),
            average_speed=round(average_speed, 2),
            peak_speed=round(float(max(peaks)), 2),
            average_direction=round(average_direction, 1) if average_direction is not None else None,
            sample_count=len(window),
            good_wind_pct=round(good_pct, 1),
            katabatic_consistency=round(katabatic_consistency, 1),
            wind_class=wind_class,
            probability_band=band,
            outcome=outcome,
            verdict=verdict,
            recalibration=recalibration,
            factor_notes=tuple(self.review_factors(prediction, wind_class)),
            verified_at=verified_at or now,
        )

        if self.store is not None:
            return self.store.store_verification(record)
        return record
