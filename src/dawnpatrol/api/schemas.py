"""Pydantic schemas for API request/response validation.

Defines all data models used by the prediction API.
"""

from datetime import date as date_type
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class FactorResponse(BaseModel):
    """One factor of a prediction.

    Attributes:
        kind: Factor name (precipitation, sky, pressure, temperature, wave)
        meets: Whether the factor is favorable
        value: Measured value, None when unavailable
        threshold: Threshold compared against
        confidence: 0-100 data confidence
        detail: Human-readable explanation
        trend: Optional trend label
        insufficient_data: Value missing or estimated
    """

    kind: str
    meets: bool
    value: Optional[float] = None
    threshold: float
    confidence: int = Field(..., ge=0, le=100)
    detail: str
    trend: Optional[str] = None
    insufficient_data: bool = False


class PredictionResponse(BaseModel):
    """Katabatic prediction for one dawn."""

    target_date: date_type
    probability: int = Field(..., ge=0, le=100, description="Chance of rideable katabatic wind")
    confidence: int = Field(..., ge=0, le=100, description="Trust in the probability")
    recommendation: str = Field(..., description="GO, MARGINAL or SKIP")
    explanation: str
    best_time_window: Optional[str] = Field(
        default=None,
        description="Decision window for GO/MARGINAL calls",
    )
    factors: list[FactorResponse]
    reliability: str = Field(..., description="Snapshot reliability: high, medium or low")
    source: str = Field(..., description="Providers behind the snapshot")
    quality: Optional[str] = Field(
        default=None,
        description="refined or preliminary",
    )
    generated_at: datetime
    frozen: bool = Field(
        default=False,
        description="True once today's value is frozen for the day",
    )
    live_check: Optional[str] = Field(
        default=None,
        description="Live wind cross-check made during the decision window",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "target_date": "2025-07-14",
                    "probability": 82,
                    "confidence": 78,
                    "recommendation": "GO",
                    "explanation": "4/5 factors favorable (82% probability). ...",
                    "best_time_window": "06:00-08:00",
                    "factors": [],
                    "reliability": "high",
                    "source": "noaa+openmeteo",
                    "quality": "refined",
                    "generated_at": "2025-07-14T05:30:00-06:00",
                    "frozen": False,
                }
            ]
        }
    }


class VerificationResponse(BaseModel):
    """Verification of a frozen prediction against observed wind."""

    target_date: date_type
    predicted_probability: int
    predicted_confidence: int
    recommendation: str
    average_speed: float = Field(..., description="Mean sensor speed in mph")
    peak_speed: float = Field(..., description="Peak speed or gust in mph")
    average_direction: Optional[float] = None
    sample_count: int
    good_wind_pct: float
    katabatic_consistency: float
    wind_class: str = Field(..., description="good, marginal or poor")
    probability_band: str = Field(..., description="high, moderate or low")
    outcome: str
    verdict: str
    recalibration: str
    factor_notes: list[str] = Field(default_factory=list)
    verified_at: Optional[datetime] = None


class WindSampleIn(BaseModel):
    """One anemometer reading."""

    timestamp: datetime
    speed_mph: float = Field(..., ge=0)
    direction: Optional[float] = Field(default=None, ge=0, le=360)
    gust_mph: Optional[float] = Field(default=None, ge=0)


class AlarmCriteriaIn(BaseModel):
    """Alarm thresholds; omitted fields take their defaults."""

    minimum_average_speed: Optional[float] = None
    direction_consistency_threshold: Optional[float] = None
    minimum_consecutive_points: Optional[int] = None
    direction_deviation_threshold: Optional[float] = None
    preferred_direction: Optional[float] = None
    preferred_direction_range: Optional[float] = None
    use_wind_direction: Optional[bool] = None


class LiveWindRequest(BaseModel):
    """Request schema for live wind analysis."""

    samples: list[WindSampleIn]
    criteria: Optional[AlarmCriteriaIn] = None
    now: Optional[datetime] = Field(
        default=None,
        description="Reference time for the one-hour window (default: latest sample)",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "samples": [
                        {"timestamp": "2025-07-14T06:00:00-06:00", "speed_mph": 14.0, "direction": 300},
                        {"timestamp": "2025-07-14T06:05:00-06:00", "speed_mph": 16.0, "direction": 310},
                    ],
                    "criteria": {"minimum_average_speed": 12},
                }
            ]
        }
    }


class LiveWindResponse(BaseModel):
    """Live wind analysis result."""

    is_alarm_worthy: bool
    average_speed: float
    direction_consistency: float
    max_consecutive_good_points: int
    analyzed_points: int
    used_fallback: bool
    average_direction: Optional[float] = None
    direction_spread: Optional[float] = None
    compass: Optional[str] = None
    analysis: str


class AccuracyResponse(BaseModel):
    """Accuracy over verified days."""

    total: int
    correct: int
    accuracy: float
    false_positives: int
    false_negatives: int
    go_success_rate: Optional[float] = None
    skip_success_rate: Optional[float] = None
    factor_hit_rates: dict[str, Optional[float]] = Field(default_factory=dict)
    calibration: dict[str, dict] = Field(default_factory=dict)
    recent_accuracy: Optional[float] = None
    outcome_counts: dict[str, int] = Field(default_factory=dict)
    target: float
    targets_met: dict[str, bool] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Health check response.

    Attributes:
        status: 'healthy', or 'degraded' when no usable snapshot is loaded
        version: API version
        lifecycle_state: prediction, verification or frozen
        snapshot_age_minutes: Age of the current snapshot
        reliability: Reliability of the current snapshot
    """

    status: str = Field(
        default="healthy",
        description="Service status",
    )
    version: str = Field(
        default="1.0.0",
        description="API version",
    )
    lifecycle_state: Optional[str] = None
    snapshot_age_minutes: Optional[float] = None
    reliability: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response schema.

    Attributes:
        error: Error type/code
        message: Human-readable error message
        detail: Additional error details
    """

    error: str = Field(
        ...,
        description="Error type",
    )
    message: str = Field(
        ...,
        description="Error message",
    )
    detail: Optional[str] = Field(
        default=None,
        description="Additional details",
    )
