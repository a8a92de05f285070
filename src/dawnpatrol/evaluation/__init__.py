"""Verification and accuracy reporting.

- VerificationEngine: reconciles a frozen prediction with sensor wind
- VerificationRecord: immutable per-day result
- classify_wind / probability_band / DECISION_MATRIX: the verdict rules
- AccuracyReport: longitudinal accuracy over verified days
"""

from dawnpatrol.evaluation.accuracy import AccuracyReport
from dawnpatrol.evaluation.verification import (
    DECISION_MATRIX,
    VerificationEngine,
    VerificationRecord,
    classify_wind,
    probability_band,
)

__all__ = [
    "AccuracyReport",
    "DECISION_MATRIX",
    "VerificationEngine",
    "VerificationRecord",
    "classify_wind",
    "probability_band",
]
