"""Factor result model shared by the five analyzers."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FactorKind(str, Enum):
    """The five katabatic factors, in weighting order."""

    PRECIPITATION = "precipitation"
    SKY = "sky"
    PRESSURE = "pressure"
    TEMPERATURE = "temperature"
    WAVE = "wave"

    @property
    def label(self) -> str:
        return FACTOR_LABELS[self]


FACTOR_LABELS = {
    FactorKind.PRECIPITATION: "Low precipitation",
    FactorKind.SKY: "Clear pre-dawn sky",
    FactorKind.PRESSURE: "Pressure change",
    FactorKind.TEMPERATURE: "Mountain-valley temperature differential",
    FactorKind.WAVE: "Wave/stability enhancement",
}


@dataclass(frozen=True)
class FactorResult:
    """Outcome of one factor analysis.

    Attributes:
        kind: Which factor this is
        meets: Whether the measured value satisfies the threshold
        value: Measured value (None when it could not be measured)
        threshold: Threshold the value was compared against
        confidence: 0-100, reflecting data quantity and quality
        detail: Human-readable explanation
        trend: Optional trend label (pressure: rising/falling/stable)
        insufficient_data: True when the value is missing or a labeled estimate
    """

    kind: FactorKind
    meets: bool
    value: Optional[float]
    threshold: float
    confidence: int
    detail: str
    trend: Optional[str] = None
    insufficient_data: bool = False

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be 0-100, got {self.confidence}")

    def __str__(self) -> str:
        status = "MET" if self.meets else "NOT MET"
        value = "n/a" if self.value is None else f"{self.value:.1f}"
        return f"{self.kind.value}: {status} (value={value}, threshold={self.threshold}, confidence={self.confidence})"

    @classmethod
    def absent(cls, kind: FactorKind, threshold: float, detail: str) -> "FactorResult":
        """Result for a factor whose input data is entirely missing."""
        return cls(
            kind=kind,
            meets=False,
            value=None,
            threshold=threshold,
            confidence=0,
            detail=detail,
            insufficient_data=True,
        )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "meets": self.meets,
            "value": self.value,
            "threshold": self.threshold,
            "confidence": self.confidence,
            "detail": self.detail,
            "trend": self.trend,
            "insufficient_data": self.insufficient_data,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "FactorResult":
        return cls(
            kind=FactorKind(d["kind"]),
            meets=bool(d["meets"]),
            value=d.get("value"),
            threshold=d["threshold"],
            confidence=int(d["confidence"]),
            detail=d.get("detail", ""),
            trend=d.get("trend"),
            insufficient_data=d.get("insufficient_data", False),
        )
