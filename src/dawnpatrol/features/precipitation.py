"""Precipitation factor.

Any rain or snow during the dawn window disrupts radiative cooling and the
drainage flow, so the worst (maximum) precipitation probability across all
locations is what counts.
"""

import logging
from datetime import date

from dawnpatrol.cache.models import AggregateSnapshot
from dawnpatrol.features.base import FactorKind, FactorResult
from dawnpatrol.features.windows import samples_in_window, samples_on_day
from dawnpatrol.utils.config import PredictionConfig

logger = logging.getLogger(__name__)

# Providers report precipitation probability reliably when they report it
PRECIPITATION_CONFIDENCE = 85


def analyze_precipitation(
    snapshot: AggregateSnapshot,
    config: PredictionConfig,
    day: date,
) -> FactorResult:
    """Score the precipitation factor for the dawn window of day.

    Uses samples inside the decision window; if none fall there, the whole
    day's samples. A day the forecast does not cover is absent.

    Args:
        snapshot: Current aggregate snapshot
        config: Prediction thresholds
        day: Local calendar day being predicted

    Returns:
        FactorResult with the maximum precipitation probability as value
    """
    threshold = config.precipitation_max_pct
    samples = [s for s in snapshot.all_samples() if s.precipitation_probability is not None]

    if not samples:
        return FactorResult.absent(
            FactorKind.PRECIPITATION, threshold, "No precipitation data available"
        )

    scope = f"{config.decision_window_label} window"
    selected = samples_in_window(
        samples, day, config.decision_start, config.decision_end, config.timezone
    )
    if not selected:
        selected = samples_on_day(samples, day, config.timezone)
        scope = f"{day.isoformat()} (no samples in dawn window)"
    if not selected:
        return FactorResult.absent(
            FactorKind.PRECIPITATION,
            threshold,
            f"No precipitation forecast for {day.isoformat()}",
        )

    value = max(s.precipitation_probability for s in selected)
    meets = value <= threshold
    detail = (
        f"Max precipitation chance {value:.0f}% over {scope} "
        f"({'at or below' if meets else 'above'} {threshold:.0f}%)"
    )
    logger.debug(f"precipitation: {detail}")

    return FactorResult(
        kind=FactorKind.PRECIPITATION,
        meets=meets,
        value=float(value),
        threshold=threshold,
        confidence=PRECIPITATION_CONFIDENCE,
        detail=detail,
    )
