"""Prediction API for dawnpatrol.

This module provides:

- create_app: Factory function to create FastAPI application
- PredictionResponse: Prediction with factors and recommendation
- VerificationResponse: Verified outcome for a past dawn
- LiveWindRequest / LiveWindResponse: Live wind analysis
- AccuracyResponse: Accuracy over verified days

Note: FastAPI-dependent exports (create_app, get_lifecycle) are lazy-loaded
to allow importing schemas without FastAPI installed.
"""

# Schemas can be imported directly (only depend on pydantic)
from dawnpatrol.api.schemas import (
    AccuracyResponse,
    ErrorResponse,
    FactorResponse,
    HealthResponse,
    LiveWindRequest,
    LiveWindResponse,
    PredictionResponse,
    VerificationResponse,
)


# Lazy imports for FastAPI-dependent components
def __getattr__(name):
    """Lazy load FastAPI-dependent components."""
    if name in ("create_app", "get_lifecycle"):
        from dawnpatrol.api.app import create_app, get_lifecycle
        if name == "create_app":
            return create_app
        elif name == "get_lifecycle":
            return get_lifecycle
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "create_app",
    "get_lifecycle",
    "AccuracyResponse",
    "ErrorResponse",
    "FactorResponse",
    "HealthResponse",
    "LiveWindRequest",
    "LiveWindResponse",
    "PredictionResponse",
    "VerificationResponse",
]
