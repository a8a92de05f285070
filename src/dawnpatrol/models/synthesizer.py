"""Five-factor katabatic prediction synthesizer.

Combines the precipitation, sky, pressure, temperature and wave factor
results into a single probability, a confidence, a GO/MARGINAL/SKIP
recommendation and a deterministic explanation.

Scoring:
    1. Weighted score over factors, each weighted by weight x confidence:
       score = sum(100 * meets * w * c) / sum(w * c)
    2. Bonus multiplier by favorable count (x1.10 / x1.15 / x1.25 at 3/4/5),
       then flat points for the clear-dry combination and wave enhancement.
       Bonuses only apply to a non-zero probability.
    3. Capped at 100 and rounded.

Example:
    >>> synthesizer = PredictionSynthesizer()
    >>> prediction = synthesizer.analyze(snapshot, previous, target_date=date(2025, 7, 14))
    >>> print(prediction.recommendation, prediction.probability)
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Mapping, Optional

import numpy as np

from dawnpatrol.cache.models import AggregateSnapshot, Reliability
from dawnpatrol.features.base import FactorKind, FactorResult
from dawnpatrol.features.precipitation import analyze_precipitation
from dawnpatrol.features.pressure import analyze_pressure
from dawnpatrol.features.sky import analyze_sky
from dawnpatrol.features.temperature import analyze_temperature
from dawnpatrol.features.wave import UpperAirProfile, analyze_wave
from dawnpatrol.features.windows import decision_day
from dawnpatrol.utils.config import PredictionConfig
from dawnpatrol.utils.units import to_datetime, to_iso_time

logger = logging.getLogger(__name__)


class Recommendation(str, Enum):
    """Dawn session call."""

    GO = "GO"
    MARGINAL = "MARGINAL"
    SKIP = "SKIP"


RECOMMENDATION_TEXT = {
    Recommendation.GO: "Strong katabatic conditions expected, worth the dawn session.",
    Recommendation.MARGINAL: "Mixed conditions, check live wind before heading out.",
    Recommendation.SKIP: "Katabatic flow unlikely, wait for a better morning.",
}

LOW_CONFIDENCE_TEXT = "Data confidence is low ({confidence}%), check live wind before heading out."


@dataclass(frozen=True)
class Prediction:
    """Synthesized prediction for one dawn.

    Attributes:
        probability: 0-100 chance of a rideable katabatic session
        confidence: 0-100 trust in the probability
        factors: Factor results keyed by kind
        recommendation: GO, MARGINAL or SKIP
        explanation: Deterministic one-paragraph explanation
        best_time_window: Decision window label for GO/MARGINAL, else None
        target_date: Local date of the dawn being predicted
        generated_at: When the prediction was computed
        reliability: Reliability of the snapshot it was computed from
        source: Source label of that snapshot
        quality: "refined", "preliminary" or None when not set by the lifecycle
        live_check: Live sensor note attached during the decision window, if any
    """

    probability: int
    confidence: int
    factors: dict[FactorKind, FactorResult]
    recommendation: Recommendation
    explanation: str
    best_time_window: Optional[str]
    target_date: date
    generated_at: datetime
    reliability: Reliability = Reliability.LOW
    source: str = "none"
    quality: Optional[str] = None
    live_check: Optional[str] = None

    @property
    def favorable_count(self) -> int:
        return sum(1 for f in self.factors.values() if f.meets)

    @property
    def favorable_factors(self) -> list[FactorKind]:
        return [kind for kind, f in self.factors.items() if f.meets]

    @property
    def unfavorable_factors(self) -> list[FactorKind]:
        return [kind for kind, f in self.factors.items() if not f.meets]

    def detailed_analysis(self) -> str:
        """Multi-line breakdown of strengths, weaknesses and data quality."""
        lines = [
            f"Katabatic analysis for {self.target_date.isoformat()}",
            "=" * 40,
            f"Probability: {self.probability}%  Confidence: {self.confidence}%  "
            f"Call: {self.recommendation.value}",
            "",
            "Strengths:",
        ]
        strengths = [self.factors[k] for k in self.favorable_factors]
        lines.extend(f"  + {f.kind.label}: {f.detail}" for f in strengths)
        if not strengths:
            lines.append("  (none)")

        lines.append("Weaknesses:")
        weaknesses = [self.factors[k] for k in self.unfavorable_factors]
        lines.extend(f"  - {f.kind.label}: {f.detail}" for f in weaknesses)
        if not weaknesses:
            lines.append("  (none)")

        warnings = []
        if self.reliability != Reliability.HIGH:
            warnings.append(f"snapshot reliability is {self.reliability.value} (source: {self.source})")
        for f in self.factors.values():
            if f.insufficient_data:
                warnings.append(f"{f.kind.value}: insufficient data, confidence {f.confidence}%")
        if self.quality == "preliminary":
            warnings.append("preliminary forecast, refined after the evening update")

        lines.append("Data quality:")
        lines.extend(f"  ! {w}" for w in warnings)
        if not warnings:
            lines.append("  OK")
        if self.live_check:
            lines.append(f"Live check: {self.live_check}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "probability": self.probability,
            "confidence": self.confidence,
            "factors": {kind.value: f.to_dict() for kind, f in self.factors.items()},
            "recommendation": self.recommendation.value,
            "explanation": self.explanation,
            "best_time_window": self.best_time_window,
            "target_date": self.target_date.isoformat(),
            "generated_at": to_iso_time(self.generated_at),
            "reliability": self.reliability.value,
            "source": self.source,
            "quality": self.quality,
            "live_check": self.live_check,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Prediction":
        return cls(
            probability=int(d["probability"]),
            confidence=int(d["confidence"]),
            factors={
                FactorKind(kind): FactorResult.from_dict(f) for kind, f in d["factors"].items()
            },
            recommendation=Recommendation(d["recommendation"]),
            explanation=d["explanation"],
            best_time_window=d.get("best_time_window"),
            target_date=date.fromisoformat(d["target_date"]),
            generated_at=to_datetime(d["generated_at"]),
            reliability=Reliability(d.get("reliability", "low")),
            source=d.get("source", "none"),
            quality=d.get("quality"),
            live_check=d.get("live_check"),
        )


class PredictionSynthesizer:
    """Turn a weather snapshot into a katabatic Prediction.

    Stateless apart from its configuration; the same inputs and generated_at
    always produce an equal Prediction.

    Args:
        config: Thresholds, weights and bonus settings
    """

    def __init__(self, config: Optional[PredictionConfig] = None):
        self.config = config or PredictionConfig()

    def __repr__(self) -> str:
        return f"PredictionSynthesizer(timezone={self.config.timezone!r})"

    # -------------------------------------------------------------------------
    # Factor analysis
    # -------------------------------------------------------------------------

    def analyze_factors(
        self,
        snapshot: AggregateSnapshot,
        previous: Optional[AggregateSnapshot],
        target_date: date,
        upper_air: Optional[UpperAirProfile] = None,
    ) -> dict[FactorKind, FactorResult]:
        """Run all five analyzers for the dawn of target_date."""
        cfg = self.config
        return {
            FactorKind.PRECIPITATION: analyze_precipitation(snapshot, cfg, target_date),
            FactorKind.SKY: analyze_sky(snapshot, cfg, target_date),
            FactorKind.PRESSURE: analyze_pressure(snapshot, previous, cfg, target_date),
            FactorKind.TEMPERATURE: analyze_temperature(snapshot, cfg, target_date),
            FactorKind.WAVE: analyze_wave(snapshot, cfg, target_date, upper_air),
        }

    def analyze(
        self,
        snapshot: AggregateSnapshot,
        previous: Optional[AggregateSnapshot] = None,
        target_date: Optional[date] = None,
        upper_air: Optional[UpperAirProfile] = None,
        generated_at: Optional[datetime] = None,
    ) -> Prediction:
        """Analyze a snapshot and synthesize a prediction.

        Args:
            snapshot: Current aggregate snapshot
            previous: Previous snapshot, used for the pressure trend
            target_date: Dawn to predict. Defaults to the next decision window
                relative to generated_at.
            upper_air: Optional upper-air profile for the wave factor
            generated_at: Timestamp recorded on the prediction (default: now)

        Returns:
            Prediction; with an empty snapshot every factor is absent and the
            call is a low-confidence MARGINAL or SKIP, never an error.
        """
        generated_at = generated_at or datetime.now(timezone.utc)
        if target_date is None:
            target_date = decision_day(generated_at, self.config.decision_end, self.config.timezone)

        if snapshot.is_empty:
            logger.warning(f"Empty snapshot for {target_date}; factors will report no data")

        factors = self.analyze_factors(snapshot, previous, target_date, upper_air)
        return self.synthesize(
            factors,
            target_date=target_date,
            generated_at=generated_at,
            reliability=snapshot.reliability,
            source=snapshot.source,
        )

    # -------------------------------------------------------------------------
    # Synthesis
    # -------------------------------------------------------------------------

    def _included(self, factor: FactorResult) -> bool:
        return factor.confidence > self.config.min_factor_confidence

    def calculate_probability(self, factors: Mapping[FactorKind, FactorResult]) -> int:
        """Weighted, bonus-adjusted probability (0-100)."""
        cfg = self.config
        numerator = 0.0
        denominator = 0.0
        for kind, factor in factors.items():
            if not self._included(factor):
                continue
            weight = cfg.weights[kind.value] * factor.confidence / 100
            denominator += weight
            if factor.meets:
                numerator += 100 * weight

        probability = numerator / denominator if denominator > 0 else 0.0

        if probability > 0:
            met = [kind for kind, f in factors.items() if f.meets and self._included(f)]
            probability *= cfg.bonus_multipliers.get(len(met), 1.0)
            if FactorKind.PRECIPITATION in met and FactorKind.SKY in met:
                probability += cfg.clear_dry_bonus
            if FactorKind.WAVE in met:
                probability += cfg.wave_bonus

        return int(round(min(100.0, probability)))

    def calculate_confidence(self, factors: Mapping[FactorKind, FactorResult]) -> int:
        """Mean factor confidence, capped when few factors are favorable."""
        if not factors:
            return 0
        average = float(np.mean([f.confidence for f in factors.values()]))
        met = sum(1 for f in factors.values() if f.meets)
        cap = self.config.confidence_caps.get(met)
        if cap is not None:
            average = min(average, average * cap)
        return int(round(average))

    def recommend(self, probability: int, confidence: int) -> Recommendation:
        cfg = self.config
        if confidence < cfg.min_confidence:
            return Recommendation.MARGINAL
        if probability >= cfg.go_probability:
            return Recommendation.GO
        if probability >= cfg.marginal_probability:
            return Recommendation.MARGINAL
        return Recommendation.SKIP

    def explain(
        self,
        factors: Mapping[FactorKind, FactorResult],
        probability: int,
        confidence: int,
        recommendation: Recommendation,
    ) -> str:
        met = [f.kind.label for f in factors.values() if f.meets]
        missed = [f.kind.label for f in factors.values() if not f.meets]

        if confidence < self.config.min_confidence:
            sentence = LOW_CONFIDENCE_TEXT.format(confidence=confidence)
        else:
            sentence = RECOMMENDATION_TEXT[recommendation]

        return (
            f"{len(met)}/{len(factors)} factors favorable ({probability}% probability). "
            f"{sentence} "
            f"Favorable: {', '.join(met) or 'none'}. "
            f"Unfavorable: {', '.join(missed) or 'none'}."
        )

    def synthesize(
        self,
        factors: Mapping[FactorKind, FactorResult],
        target_date: date,
        generated_at: datetime,
        reliability: Reliability = Reliability.LOW,
        source: str = "none",
    ) -> Prediction:
        """Combine precomputed factor results into a Prediction."""
        probability = self.calculate_probability(factors)
        confidence = self.calculate_confidence(factors)
        recommendation = self.recommend(probability, confidence)
        explanation = self.explain(factors, probability, confidence, recommendation)

        window = None
        if recommendation in (Recommendation.GO, Recommendation.MARGINAL):
            window = self.config.decision_window_label

        logger.info(
            f"Prediction for {target_date}: {recommendation.value} "
            f"p={probability}% c={confidence}% ({sum(1 for f in factors.values() if f.meets)}/{len(factors)} favorable)"
        )

        return Prediction(
            probability=probability,
            confidence=confidence,
            factors=dict(factors),
            recommendation=recommendation,
            explanation=explanation,
            best_time_window=window,
            target_date=target_date,
            generated_at=generated_at,
            reliability=reliability,
            source=source,
        )
