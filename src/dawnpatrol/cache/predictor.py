"""Time-aware prediction lifecycle.

Decides from wall-clock time whether today's prediction is still being
recomputed or has been frozen:

    PREDICTION    before the decision window opens (default 06:00)
    VERIFICATION  during the decision window (06:00-08:00); recomputation
                  continues and, with a sensor configured, each candidate
                  carries a live wind cross-check
    FROZEN        after the window closes, until local midnight

get_todays_prediction() is the single accessor for today's value. Once
FROZEN, every caller receives the identical Prediction for the rest of the
day, and the frozen value is persisted so a restart returns it too. Other
day offsets always recompute from the latest snapshot.

Example:
    >>> clock = FixedClock(datetime(2025, 7, 14, 5, 30, tzinfo=ZoneInfo("America/Denver")))
    >>> lifecycle = PredictionLifecycle(clock=clock)
    >>> lifecycle.update_snapshot(snapshot)
    >>> lifecycle.get_todays_prediction().recommendation
    <Recommendation.GO: 'GO'>
"""

import logging
import threading
from dataclasses import replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Optional, Protocol
from zoneinfo import ZoneInfo

from dawnpatrol.cache.models import AggregateSnapshot
from dawnpatrol.features.live_wind import analyze_live_wind
from dawnpatrol.features.wave import UpperAirProfile
from dawnpatrol.features.windows import local_datetime
from dawnpatrol.models.synthesizer import Prediction, PredictionSynthesizer
from dawnpatrol.pipelines.aggregator import SOURCE_ERRORS
from dawnpatrol.utils.base import SensorProvider
from dawnpatrol.utils.config import AlarmCriteria, PredictionConfig

logger = logging.getLogger(__name__)

MAX_DAY_OFFSET = 7


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in a fixed zone."""

    def __init__(self, tz: str = "America/Denver"):
        self.zone = ZoneInfo(tz)

    def now(self) -> datetime:
        return datetime.now(self.zone)


class FixedClock:
    """Settable clock for deterministic tests and replays."""

    def __init__(self, now: datetime):
        if now.tzinfo is None:
            raise ValueError("FixedClock requires an aware datetime")
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        if now.tzinfo is None:
            raise ValueError("FixedClock requires an aware datetime")
        self._now = now

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta given as keyword arguments."""
        self._now = self._now + timedelta(**kwargs)
        return self._now


class LifecycleState(str, Enum):
    PREDICTION = "prediction"
    VERIFICATION = "verification"
    FROZEN = "frozen"


def lifecycle_state(now: datetime, config: Optional[PredictionConfig] = None) -> LifecycleState:
    """State of today's prediction at a given instant."""
    config = config or PredictionConfig()
    local = now.astimezone(ZoneInfo(config.timezone)).time()
    if local < config.decision_start:
        return LifecycleState.PREDICTION
    if local < config.decision_end:
        return LifecycleState.VERIFICATION
    return LifecycleState.FROZEN


class PredictionLifecycle:
    """Owns the current/previous snapshot and today's authoritative prediction.

    Snapshots are replaced whole; a failed refresh leaves the previous pair
    in place. While today is not yet frozen each computation becomes the
    day's candidate; the first access after the freeze point persists that
    candidate (or computes one if none exists) and returns it unchanged
    until the date rolls over.

    Args:
        synthesizer: Prediction synthesizer (default: one built from config)
        snapshot_source: Callable returning a fresh AggregateSnapshot, used by refresh()
        clock: Time source (default: SystemClock in the configured zone)
        store: Optional PredictionStore for snapshots, freezes and verifications
        config: Prediction configuration
        upper_air: Optional upper-air profile passed to the wave factor
        sensor: Optional anemometer used to cross-check candidates during
            the decision window
        alarm_criteria: Criteria for that live cross-check
    """

    def __init__(
        self,
        synthesizer: Optional[PredictionSynthesizer] = None,
        snapshot_source: Optional[Callable[[], AggregateSnapshot]] = None,
        clock: Optional[Clock] = None,
        store=None,
        config: Optional[PredictionConfig] = None,
        upper_air: Optional[UpperAirProfile] = None,
        sensor: Optional[SensorProvider] = None,
        alarm_criteria: Optional[AlarmCriteria] = None,
    ):
        self.config = config or (synthesizer.config if synthesizer else PredictionConfig())
        self.synthesizer = synthesizer or PredictionSynthesizer(self.config)
        self.snapshot_source = snapshot_source
        self.clock = clock or SystemClock(self.config.timezone)
        self.store = store
        self.upper_air = upper_air
        self.sensor = sensor
        self.alarm_criteria = alarm_criteria or AlarmCriteria()

        self._lock = threading.RLock()
        self._current: Optional[AggregateSnapshot] = None
        self._previous: Optional[AggregateSnapshot] = None
        self._candidate: Optional[Prediction] = None
        self._frozen: Optional[Prediction] = None

        if store is not None:
            self._current, self._previous = store.get_snapshots()
            if self._current is not None:
                logger.info(f"Restored snapshot from store: {self._current}")

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    @property
    def current_snapshot(self) -> Optional[AggregateSnapshot]:
        return self._current

    @property
    def previous_snapshot(self) -> Optional[AggregateSnapshot]:
        return self._previous

    def update_snapshot(self, snapshot: AggregateSnapshot) -> None:
        """Replace the current snapshot; the old one becomes previous.

        Before the freeze point the day's candidate is recomputed so the
        value frozen later reflects the newest data.
        """
        with self._lock:
            self._previous, self._current = self._current, snapshot
            if self.store is not None:
                self.store.save_snapshot(snapshot)
            now = self.clock.now()
            if lifecycle_state(now, self.config) != LifecycleState.FROZEN:
                self._candidate = self._compute_candidate(self._today(now), now)
        logger.debug(f"Snapshot updated: {snapshot}")

    def refresh(self) -> Optional[AggregateSnapshot]:
        """Pull a fresh snapshot from the source and install it.

        Returns:
            The new snapshot, or None if the source failed (the previous
            snapshot stays in place).

        Raises:
            RuntimeError: If no snapshot source was configured
        """
        if self.snapshot_source is None:
            raise RuntimeError("PredictionLifecycle has no snapshot source")
        try:
            snapshot = self.snapshot_source()
        except SOURCE_ERRORS as e:
            logger.warning(f"Snapshot refresh failed, keeping previous snapshot: {e}")
            return None
        self.update_snapshot(snapshot)
        return snapshot

    # -------------------------------------------------------------------------
    # Predictions
    # -------------------------------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        return lifecycle_state(self.clock.now(), self.config)

    def _today(self, now: datetime) -> date:
        return now.astimezone(ZoneInfo(self.config.timezone)).date()

    def _compute(self, target_date: date, now: datetime, quality: str) -> Prediction:
        snapshot = self._current
        if snapshot is None:
            snapshot = AggregateSnapshot(series=(), fetched_at=now)
        prediction = self.synthesizer.analyze(
            snapshot,
            self._previous,
            target_date=target_date,
            upper_air=self.upper_air,
            generated_at=now,
        )
        return replace(prediction, quality=quality)

    def _compute_candidate(self, today: date, now: datetime) -> Prediction:
        candidate = self._compute(today, now, quality="refined")
        if lifecycle_state(now, self.config) == LifecycleState.VERIFICATION:
            candidate = self._cross_check(candidate, now)
        return candidate

    def _cross_check(self, prediction: Prediction, now: datetime) -> Prediction:
        """Attach the live sensor reading since the window opened to a candidate.

        A sensor failure leaves the candidate as computed.
        """
        if self.sensor is None:
            return prediction
        start = local_datetime(prediction.target_date, self.config.decision_start, self.config.timezone)
        try:
            samples = self.sensor.fetch_history(start, now)
        except SOURCE_ERRORS as e:
            logger.warning(f"Live wind cross-check failed, keeping forecast only: {e}")
            return prediction

        analysis = analyze_live_wind(samples, self.alarm_criteria, now=now)
        if analysis.analyzed_points == 0:
            note = f"{now:%H:%M} no live wind data yet"
        else:
            verdict = "live wind confirms" if analysis.is_alarm_worthy else "live wind not confirming"
            note = f"{now:%H:%M} {verdict}: {analysis.analysis}"
        logger.info(f"Live cross-check for {prediction.target_date}: {note}")
        return replace(prediction, live_check=note)

    def get_todays_prediction(self) -> Prediction:
        """The authoritative prediction for today's dawn.

        Recomputed from the current snapshot until the decision window
        closes; frozen and identical for every caller afterwards.
        """
        with self._lock:
            now = self.clock.now()
            today = self._today(now)

            if lifecycle_state(now, self.config) != LifecycleState.FROZEN:
                self._candidate = self._compute_candidate(today, now)
                return self._candidate

            if self._frozen is not None and self._frozen.target_date == today:
                return self._frozen

            frozen = self.store.get_frozen_prediction(today) if self.store is not None else None
            if frozen is None:
                candidate = self._candidate
                if candidate is None or candidate.target_date != today:
                    logger.info(f"No candidate before freeze for {today}; computing once")
                    candidate = self._compute(today, now, quality="refined")
                frozen = candidate
                if self.store is not None:
                    frozen = self.store.store_frozen_prediction(candidate, frozen_at=now)
                logger.info(
                    f"Froze prediction for {today}: {frozen.recommendation.value} "
                    f"{frozen.probability}%"
                )

            self._frozen = frozen
            self._candidate = None
            return frozen

    def quality_for(self, day_offset: int, now: Optional[datetime] = None) -> str:
        """Data-quality label for a future day's prediction."""
        now = now or self.clock.now()
        if day_offset == 1:
            local = now.astimezone(ZoneInfo(self.config.timezone)).time()
            return "refined" if local >= self.config.refined_after else "preliminary"
        return "preliminary"

    def get_prediction(self, day_offset: int = 0) -> Prediction:
        """Prediction for today plus day_offset days.

        Offset 0 is get_todays_prediction(). Later days are never frozen and
        always recompute from the latest snapshot.

        Raises:
            ValueError: If day_offset is negative or beyond MAX_DAY_OFFSET
        """
        if day_offset < 0:
            raise ValueError(f"day_offset must be >= 0, got {day_offset}")
        if day_offset > MAX_DAY_OFFSET:
            raise ValueError(f"day_offset must be <= {MAX_DAY_OFFSET}, got {day_offset}")
        if day_offset == 0:
            return self.get_todays_prediction()

        with self._lock:
            now = self.clock.now()
            target = self._today(now) + timedelta(days=day_offset)
            return self._compute(target, now, quality=self.quality_for(day_offset, now))

    def predict_upcoming(self, days: int = 3) -> list[Prediction]:
        """Daily breakdown starting today; day 0 is the authoritative value."""
        if days < 1:
            raise ValueError(f"days must be >= 1, got {days}")
        return [self.get_prediction(offset) for offset in range(min(days, MAX_DAY_OFFSET + 1))]

    def get_verification(self, target_date: date):
        """Verification record for a date, or None if not verified."""
        if self.store is None:
            return None
        return self.store.get_verification(target_date)
