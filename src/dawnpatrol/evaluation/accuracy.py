"""Longitudinal accuracy reporting over verification records.

Aggregates verified days into accuracy, false positive/negative counts,
per-recommendation success rates, per-factor hit rates and confidence
calibration.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

import pandas as pd

from dawnpatrol.evaluation.verification import CORRECT_OUTCOMES, VerificationRecord
from dawnpatrol.utils.config import FACTOR_NAMES

logger = logging.getLogger(__name__)

ACCURACY_TARGET = 70.0
RECENT_DAYS = 7
CALIBRATION_BUCKET = 10


def records_to_frame(records: Iterable[VerificationRecord]) -> pd.DataFrame:
    """One row per verified day, sorted by date, with factor flag columns."""
    rows = []
    for r in records:
        row = {
            "target_date": pd.Timestamp(r.target_date),
            "probability": r.predicted_probability,
            "confidence": r.predicted_confidence,
            "recommendation": r.recommendation,
            "average_speed": r.average_speed,
            "wind_class": r.wind_class,
            "outcome": r.outcome,
            "correct": r.outcome in CORRECT_OUTCOMES,
            "actual_good": r.wind_class == "good",
        }
        for name in FACTOR_NAMES:
            row[f"factor_{name}"] = name in r.favorable_factors
        rows.append(row)

    columns = [
        "target_date", "probability", "confidence", "recommendation", "average_speed",
        "wind_class", "outcome", "correct", "actual_good",
    ] + [f"factor_{name}" for name in FACTOR_NAMES]
    df = pd.DataFrame(rows, columns=columns)
    return df.sort_values("target_date").reset_index(drop=True)


def _rate(mask: pd.Series) -> Optional[float]:
    """Percent of True values, None for an empty selection."""
    if len(mask) == 0:
        return None
    return float(mask.mean() * 100)


@dataclass
class AccuracyReport:
    """Accuracy summary over verified days.

    Attributes:
        total: Number of verified days
        correct: Days whose outcome was a correct call
        accuracy: Percent correct (0 with no records)
        false_positives: High-probability days with poor wind
        false_negatives: Low-probability days with good wind
        go_success_rate: Percent of GO days with good wind
        skip_success_rate: Percent of SKIP days without good wind
        factor_hit_rates: Per factor, percent of its favorable days with good wind
        calibration: Per confidence bucket, mean confidence, percent good, count
        recent_accuracy: Accuracy over the last RECENT_DAYS records
        outcome_counts: Days per decision matrix outcome
        target: Accuracy target in percent
        targets_met: Which targets were met
    """

    total: int
    correct: int
    accuracy: float
    false_positives: int
    false_negatives: int
    go_success_rate: Optional[float] = None
    skip_success_rate: Optional[float] = None
    factor_hit_rates: dict[str, Optional[float]] = field(default_factory=dict)
    calibration: dict[str, dict] = field(default_factory=dict)
    recent_accuracy: Optional[float] = None
    outcome_counts: dict[str, int] = field(default_factory=dict)
    target: float = ACCURACY_TARGET
    targets_met: dict[str, bool] = field(default_factory=dict)

    def __post_init__(self):
        """Check targets."""
        self.targets_met = {"accuracy": self.total > 0 and self.accuracy >= self.target}

    @classmethod
    def from_records(
        cls,
        records: Iterable[VerificationRecord],
        target: float = ACCURACY_TARGET,
    ) -> "AccuracyReport":
        """Build a report from verification records in any order."""
        df = records_to_frame(records)
        if df.empty:
            return cls(total=0, correct=0, accuracy=0.0, false_positives=0,
                       false_negatives=0, target=target)

        factor_hit_rates = {
            name: _rate(df.loc[df[f"factor_{name}"], "actual_good"])
            for name in FACTOR_NAMES
        }

        buckets = (df["confidence"] // CALIBRATION_BUCKET) * CALIBRATION_BUCKET
        calibration = {}
        for bucket, group in df.groupby(buckets):
            key = f"{int(bucket)}-{int(bucket) + CALIBRATION_BUCKET - 1}"
            calibration[key] = {
                "predicted": float(group["confidence"].mean()),
                "actual": float(group["actual_good"].mean() * 100),
                "count": int(len(group)),
            }

        recent = df.tail(RECENT_DAYS)

        report = cls(
            total=len(df),
            correct=int(df["correct"].sum()),
            accuracy=float(df["correct"].mean() * 100),
            false_positives=int((df["outcome"] == "false_positive").sum()),
            false_negatives=int((df["outcome"] == "major_miss").sum()),
            go_success_rate=_rate(df.loc[df["recommendation"] == "GO", "actual_good"]),
            skip_success_rate=_rate(~df.loc[df["recommendation"] == "SKIP", "actual_good"]),
            factor_hit_rates=factor_hit_rates,
            calibration=calibration,
            recent_accuracy=_rate(recent["correct"]),
            outcome_counts={k: int(v) for k, v in df["outcome"].value_counts().items()},
            target=target,
        )
        logger.info(f"Accuracy over {report.total} days: {report.accuracy:.1f}%")
        return report

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "correct": self.correct,
            "accuracy": self.accuracy,
            "false_positives": self.false_positives,
            "false_negatives": self.false_negatives,
            "go_success_rate": self.go_success_rate,
            "skip_success_rate": self.skip_success_rate,
            "factor_hit_rates": self.factor_hit_rates,
            "calibration": self.calibration,
            "recent_accuracy": self.recent_accuracy,
            "outcome_counts": self.outcome_counts,
            "target": self.target,
            "targets_met": self.targets_met,
        }

    def summary(self) -> str:
        """Generate human-readable summary."""
        def pct(value: Optional[float]) -> str:
            return "n/a" if value is None else f"{value:.1f}%"

        status = "[PASS]" if self.targets_met.get("accuracy") else "[FAIL]"
        lines = [
            "Prediction Accuracy Summary",
            "=" * 40,
            f"Verified days: {self.total}",
            f"Accuracy: {self.accuracy:.1f}% (target: >={self.target:.0f}%) {status}",
            f"False positives: {self.false_positives}",
            f"False negatives: {self.false_negatives}",
            f"GO success rate: {pct(self.go_success_rate)}",
            f"SKIP success rate: {pct(self.skip_success_rate)}",
            f"Recent ({RECENT_DAYS} days): {pct(self.recent_accuracy)}",
        ]

        if self.factor_hit_rates:
            lines.append("Factor hit rates:")
            for name, rate in self.factor_hit_rates.items():
                lines.append(f"  {name}: {pct(rate)}")

        if self.calibration:
            lines.append("Confidence calibration:")
            for bucket, data in sorted(self.calibration.items(), key=lambda kv: int(kv[0].split("-")[0])):
                lines.append(
                    f"  {bucket}: predicted {data['predicted']:.0f}%, "
                    f"actual {data['actual']:.0f}% (n={data['count']})"
                )

        lines.append("=" * 40)
        return "\n".join(lines)
