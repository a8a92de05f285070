"""Local-time window selection.

Provider timestamps are aware datetimes in arbitrary zones; windows such as
"02:00-05:00" are local to the lake, so samples are converted before
comparing. Both ends of a window are inclusive, matching hourly forecasts
where the 05:00 sample still describes the pre-dawn period.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Sequence, TypeVar
from zoneinfo import ZoneInfo

T = TypeVar("T")


def local_datetime(day: date, at: time, tz: str) -> datetime:
    """Aware datetime for a local wall-clock time on a given day."""
    return datetime.combine(day, at, tzinfo=ZoneInfo(tz))


def window_bounds(day: date, start: time, end: time, tz: str) -> tuple[datetime, datetime]:
    """Aware (start, end) datetimes of a local window on a day."""
    return local_datetime(day, start, tz), local_datetime(day, end, tz)


def samples_in_window(
    samples: Iterable[T],
    day: date,
    start: time,
    end: time,
    tz: str,
) -> list[T]:
    """Samples whose timestamp falls within [start, end] local time on day."""
    lo, hi = window_bounds(day, start, end, tz)
    return [s for s in samples if lo <= s.timestamp <= hi]


def samples_on_day(samples: Iterable[T], day: date, tz: str) -> list[T]:
    """Samples whose local calendar date is day."""
    zone = ZoneInfo(tz)
    return [s for s in samples if s.timestamp.astimezone(zone).date() == day]


def samples_near_window(
    samples: Iterable[T],
    day: date,
    start: time,
    end: time,
    tz: str,
    max_gap: timedelta,
) -> list[T]:
    """Samples within max_gap of a local window on day (window included)."""
    lo, hi = window_bounds(day, start, end, tz)
    return [s for s in samples if lo - max_gap <= s.timestamp <= hi + max_gap]


def nearest_sample(
    samples: Sequence[T],
    target: datetime,
    max_gap: Optional[timedelta] = None,
) -> Optional[T]:
    """Sample closest in time to target, or None if none within max_gap."""
    if not samples:
        return None
    best = min(samples, key=lambda s: abs(s.timestamp - target))
    if max_gap is not None and abs(best.timestamp - target) > max_gap:
        return None
    return best


def decision_day(now: datetime, decision_end: time, tz: str) -> date:
    """The calendar day whose dawn window a forecast issued at now targets.

    Before the decision window closes it is today; afterwards, tomorrow.
    """
    local = now.astimezone(ZoneInfo(tz))
    if local.time() < decision_end:
        return local.date()
    return local.date() + timedelta(days=1)
