"""Live wind analysis over raw anemometer samples.

Independent of the forecast model: it answers "is it blowing right now?" for
the wake-up alarm and supplies the observed side of verification.

A sample is a good point when its speed reaches the minimum average speed
and, with direction gating on, its direction is inside the preferred sector.
The longest streak of good points, the share of samples inside the sector
and the average speed decide whether the conditions are alarm-worthy.

Example:
    >>> result = analyze_live_wind(samples, AlarmCriteria(use_wind_direction=False))
    >>> result.max_consecutive_good_points
    3
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence

import numpy as np

from dawnpatrol.cache.models import WindSample
from dawnpatrol.utils.config import AlarmCriteria
from dawnpatrol.utils.geo import circular_mean, degrees_to_compass, within_sector

logger = logging.getLogger(__name__)

ANALYSIS_WINDOW = timedelta(hours=1)
FALLBACK_SAMPLE_COUNT = 10


@dataclass(frozen=True)
class LiveWindAnalysis:
    """Result of a live wind analysis.

    Attributes:
        is_alarm_worthy: All three alarm conditions hold
        average_speed: Mean speed over the analyzed samples (mph)
        direction_consistency: Percent of samples inside the preferred sector
        max_consecutive_good_points: Longest run of good points
        analyzed_points: Number of samples analyzed
        used_fallback: True when no sample fell in the last hour and the most
            recent samples were analyzed instead
        average_direction: Circular mean direction (degrees), if any
        direction_spread: Circular standard deviation of direction (degrees)
        compass: 16-point label of the average direction
        analysis: One-line summary
    """

    is_alarm_worthy: bool
    average_speed: float
    direction_consistency: float
    max_consecutive_good_points: int
    analyzed_points: int
    used_fallback: bool
    average_direction: Optional[float] = None
    direction_spread: Optional[float] = None
    compass: Optional[str] = None
    analysis: str = ""

    def to_dict(self) -> dict:
        return {
            "is_alarm_worthy": self.is_alarm_worthy,
            "average_speed": self.average_speed,
            "direction_consistency": self.direction_consistency,
            "max_consecutive_good_points": self.max_consecutive_good_points,
            "analyzed_points": self.analyzed_points,
            "used_fallback": self.used_fallback,
            "average_direction": self.average_direction,
            "direction_spread": self.direction_spread,
            "compass": self.compass,
            "analysis": self.analysis,
        }


def is_good_point(sample: WindSample, criteria: AlarmCriteria) -> bool:
    """Speed at or above the minimum and, if gated, direction in the sector."""
    if sample.speed_mph < criteria.minimum_average_speed:
        return False
    if not criteria.use_wind_direction:
        return True
    if sample.direction is None:
        return False
    return within_sector(
        sample.direction, criteria.preferred_direction, criteria.preferred_direction_range
    )


def max_consecutive_good_points(samples: Sequence[WindSample], criteria: AlarmCriteria) -> int:
    """Longest run of consecutive good points; any failing point resets the run."""
    best = 0
    current = 0
    for sample in samples:
        if is_good_point(sample, criteria):
            current += 1
            best = max(best, current)
        else:
            current = 0
    return best


def direction_consistency(samples: Sequence[WindSample], criteria: AlarmCriteria) -> float:
    """Percent of samples whose direction lies in the preferred sector.

    With direction gating off every sample counts as consistent. Samples
    without a direction count against consistency when gating is on.
    """
    if not samples:
        return 0.0
    if not criteria.use_wind_direction:
        return 100.0
    inside = sum(
        1 for s in samples
        if s.direction is not None
        and within_sector(s.direction, criteria.preferred_direction, criteria.preferred_direction_range)
    )
    return inside / len(samples) * 100


def circular_spread(directions: Sequence[float]) -> Optional[float]:
    """Circular standard deviation in degrees."""
    if not directions:
        return None
    radians = np.radians(directions)
    resultant = math.hypot(np.mean(np.sin(radians)), np.mean(np.cos(radians)))
    if resultant >= 1.0:
        return 0.0
    if resultant <= 0.0:
        return 180.0
    return float(np.degrees(math.sqrt(-2 * math.log(resultant))))


def select_window(
    samples: Sequence[WindSample],
    now: Optional[datetime] = None,
    window: timedelta = ANALYSIS_WINDOW,
    fallback_count: int = FALLBACK_SAMPLE_COUNT,
) -> tuple[list[WindSample], bool]:
    """Pick the samples to analyze.

    Returns:
        Tuple of (samples, used_fallback). Samples from the last window
        relative to now (default: the latest sample's time); when none fall
        there, the most recent fallback_count samples with used_fallback=True.
    """
    ordered = sorted(samples, key=lambda s: s.timestamp)
    if not ordered:
        return [], False
    now = now or ordered[-1].timestamp
    recent = [s for s in ordered if now - window <= s.timestamp <= now]
    if recent:
        return recent, False
    logger.info(
        f"No wind samples in the last {window}; using the {fallback_count} most recent"
    )
    return ordered[-fallback_count:], True


def analyze_live_wind(
    samples: Sequence[WindSample],
    criteria: Optional[AlarmCriteria] = None,
    now: Optional[datetime] = None,
) -> LiveWindAnalysis:
    """Decide whether current wind conditions are alarm-worthy.

    Args:
        samples: Sensor samples in any order
        criteria: Alarm thresholds (defaults apply when omitted)
        now: Reference time for the one-hour window

    Returns:
        LiveWindAnalysis; with no samples at all, a non-alarm result with zeros
    """
    criteria = criteria or AlarmCriteria()
    selected, used_fallback = select_window(samples, now)

    if not selected:
        return LiveWindAnalysis(
            is_alarm_worthy=False,
            average_speed=0.0,
            direction_consistency=0.0,
            max_consecutive_good_points=0,
            analyzed_points=0,
            used_fallback=False,
            analysis="No wind data available",
        )

    average_speed = float(np.mean([s.speed_mph for s in selected]))
    consistency = direction_consistency(selected, criteria)
    streak = max_consecutive_good_points(selected, criteria)
    directions = [s.direction for s in selected if s.direction is not None]
    avg_direction = circular_mean(directions)
    spread = circular_spread(directions)

    alarm_worthy = (
        average_speed >= criteria.minimum_average_speed
        and consistency >= criteria.direction_consistency_threshold
        and streak >= criteria.minimum_consecutive_points
    )

    compass = degrees_to_compass(avg_direction) if avg_direction is not None else None
    direction_text = f"{avg_direction:.0f} deg ({compass})" if avg_direction is not None else "n/a"
    analysis = (
        f"Avg speed {average_speed:.1f} mph, direction {direction_text}, "
        f"consistency {consistency:.0f}%, longest streak {streak}"
        + (" [fallback: last samples, none in past hour]" if used_fallback else "")
    )

    return LiveWindAnalysis(
        is_alarm_worthy=alarm_worthy,
        average_speed=average_speed,
        direction_consistency=consistency,
        max_consecutive_good_points=streak,
        analyzed_points=len(selected),
        used_fallback=used_fallback,
        average_direction=avg_direction,
        direction_spread=spread,
        compass=compass,
        analysis=analysis,
    )
