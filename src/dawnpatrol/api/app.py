"""FastAPI application for dawn patrol predictions.

Provides REST API endpoints for:
- Today's authoritative prediction and upcoming days
- Verification records and accuracy
- Live wind analysis for the wake-up alarm
- Health checks

Example:
    >>> from dawnpatrol.api import create_app
    >>> app = create_app()
    >>> # Run with: uvicorn dawnpatrol.api.app:app --reload
"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

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
from dawnpatrol.cache.database import DEFAULT_DB_PATH, PredictionStore
from dawnpatrol.cache.models import WindSample
from dawnpatrol.cache.predictor import LifecycleState, PredictionLifecycle
from dawnpatrol.evaluation.accuracy import AccuracyReport
from dawnpatrol.features.live_wind import analyze_live_wind
from dawnpatrol.models.synthesizer import Prediction
from dawnpatrol.utils.config import AlarmCriteria, ConfigurationError

logger = logging.getLogger(__name__)

# API version
API_VERSION = "1.0.0"


def prediction_response(prediction: Prediction, frozen: bool = False) -> PredictionResponse:
    """Convert a Prediction into its API schema."""
    return PredictionResponse(
        target_date=prediction.target_date,
        probability=prediction.probability,
        confidence=prediction.confidence,
        recommendation=prediction.recommendation.value,
        explanation=prediction.explanation,
        best_time_window=prediction.best_time_window,
        factors=[FactorResponse(**f.to_dict()) for f in prediction.factors.values()],
        reliability=prediction.reliability.value,
        source=prediction.source,
        quality=prediction.quality,
        generated_at=prediction.generated_at,
        frozen=frozen,
        live_check=prediction.live_check,
    )


# Global lifecycle, created on first use so importing the app opens no database
_lifecycle: Optional[PredictionLifecycle] = None


def get_lifecycle() -> PredictionLifecycle:
    """Get or create the global lifecycle backed by the default store."""
    global _lifecycle
    if _lifecycle is None:
        _lifecycle = PredictionLifecycle(store=PredictionStore(DEFAULT_DB_PATH))
    return _lifecycle


def create_app(
    lifecycle: Optional[PredictionLifecycle] = None,
    store: Optional[PredictionStore] = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        lifecycle: Lifecycle serving predictions. Defaults to the global one.
        store: Store for verifications and accuracy. Defaults to the
            lifecycle's store.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Dawn Patrol API",
        description="Katabatic wind prediction and verification for Soda Lake",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def current_lifecycle() -> PredictionLifecycle:
        return lifecycle if lifecycle is not None else get_lifecycle()

    def current_store() -> Optional[PredictionStore]:
        return store if store is not None else current_lifecycle().store

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with custom response."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=f"HTTP_{exc.status_code}",
                message=str(exc.detail),
            ).model_dump(),
        )

    @app.get("/", tags=["info"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Dawn Patrol API",
            "version": API_VERSION,
            "docs": "/docs",
        }

    @app.get("/health", response_model=HealthResponse, tags=["info"])
    async def health_check():
        """Health check with snapshot age and reliability."""
        lc = current_lifecycle()
        snapshot = lc.current_snapshot
        now = lc.clock.now()

        age = None
        reliability = None
        if snapshot is not None:
            age = round((now - snapshot.fetched_at).total_seconds() / 60, 1)
            reliability = snapshot.reliability.value

        return HealthResponse(
            status="healthy" if snapshot is not None and not snapshot.is_empty else "degraded",
            version=API_VERSION,
            lifecycle_state=lc.state.value,
            snapshot_age_minutes=age,
            reliability=reliability,
        )

    @app.get("/prediction/today", response_model=PredictionResponse, tags=["predictions"])
    async def todays_prediction():
        """Today's authoritative prediction; identical for every caller once frozen."""
        lc = current_lifecycle()
        state = lc.state
        prediction = lc.get_todays_prediction()
        return prediction_response(prediction, frozen=state == LifecycleState.FROZEN)

    @app.get(
        "/prediction/{day_offset}",
        response_model=PredictionResponse,
        responses={400: {"model": ErrorResponse, "description": "Invalid day offset"}},
        tags=["predictions"],
    )
    async def prediction_for_offset(day_offset: int):
        """Prediction for today plus day_offset days (0 is today's frozen-aware value)."""
        lc = current_lifecycle()
        state = lc.state
        try:
            prediction = lc.get_prediction(day_offset)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        frozen = day_offset == 0 and state == LifecycleState.FROZEN
        return prediction_response(prediction, frozen=frozen)

    @app.get("/predictions", response_model=list[PredictionResponse], tags=["predictions"])
    async def upcoming_predictions(days: int = Query(default=3, ge=1, le=8)):
        """Daily breakdown starting today."""
        lc = current_lifecycle()
        frozen_today = lc.state == LifecycleState.FROZEN
        predictions = lc.predict_upcoming(days)
        return [
            prediction_response(p, frozen=(i == 0 and frozen_today))
            for i, p in enumerate(predictions)
        ]

    @app.get(
        "/verification/{target_date}",
        response_model=VerificationResponse,
        responses={404: {"model": ErrorResponse, "description": "Not verified"}},
        tags=["verification"],
    )
    async def verification(target_date: date):
        """Verification record for a date; 404 while absent."""
        record = current_lifecycle().get_verification(target_date)
        if record is None:
            raise HTTPException(
                status_code=404,
                detail=f"No verification for {target_date.isoformat()}",
            )
        return VerificationResponse(**record.to_dict())

    @app.post(
        "/live-wind",
        response_model=LiveWindResponse,
        responses={400: {"model": ErrorResponse, "description": "Invalid criteria"}},
        tags=["live"],
    )
    async def live_wind(request: LiveWindRequest):
        """Analyze recent anemometer samples against alarm criteria."""
        overrides = request.criteria.model_dump(exclude_none=True) if request.criteria else {}
        try:
            criteria = AlarmCriteria.from_mapping(overrides)
        except ConfigurationError as e:
            raise HTTPException(status_code=400, detail=str(e))

        samples = [
            WindSample(
                timestamp=s.timestamp,
                speed_mph=s.speed_mph,
                direction=s.direction,
                gust_mph=s.gust_mph,
            )
            for s in request.samples
        ]
        try:
            result = analyze_live_wind(samples, criteria, now=request.now)
        except TypeError as e:
            # naive and aware timestamps cannot be compared
            raise HTTPException(status_code=400, detail=f"Inconsistent timestamps: {e}")
        return LiveWindResponse(**result.to_dict())

    @app.get(
        "/accuracy",
        response_model=AccuracyResponse,
        responses={503: {"model": ErrorResponse, "description": "No store configured"}},
        tags=["verification"],
    )
    async def accuracy(
        start: Optional[date] = None,
        end: Optional[date] = None,
    ):
        """Accuracy report over verified days."""
        st = current_store()
        if st is None:
            raise HTTPException(status_code=503, detail="No prediction store configured")
        report = AccuracyReport.from_records(st.list_verifications(start, end))
        return AccuracyResponse(**report.to_dict())

    return app


# Default app instance for uvicorn
app = create_app()
