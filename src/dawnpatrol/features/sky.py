"""Sky-clearness factor.

Clear skies between 02:00 and 05:00 let the slopes cool radiatively, which
is what drives the drainage flow at dawn.
"""

import logging
from datetime import date, timedelta

import numpy as np

from dawnpatrol.cache.models import AggregateSnapshot
from dawnpatrol.features.base import FactorKind, FactorResult
from dawnpatrol.features.windows import local_datetime, samples_in_window, samples_near_window
from dawnpatrol.utils.config import PredictionConfig

logger = logging.getLogger(__name__)

# Confidence by number of in-window samples; 3+ gets the top value
WINDOW_CONFIDENCE = {1: 60, 2: 70}
FULL_WINDOW_CONFIDENCE = 80
# Clearness estimated from samples outside the window
ESTIMATE_CONFIDENCE = 40
ESTIMATE_SAMPLES = 3


def analyze_sky(
    snapshot: AggregateSnapshot,
    config: PredictionConfig,
    day: date,
) -> FactorResult:
    """Score pre-dawn sky clearness for day.

    clearness = 100 - mean(cloud cover) over the pre-dawn window at all
    locations. When no sample falls in the window, the samples nearest to it
    (within config.max_sample_gap_hours) give a labeled estimate at reduced
    confidence; with none that close the factor is absent.

    Returns:
        FactorResult with clear-sky percentage as value
    """
    threshold = config.clear_sky_min_pct
    samples = [s for s in snapshot.all_samples() if s.cloud_cover is not None]

    if not samples:
        return FactorResult.absent(FactorKind.SKY, threshold, "No cloud cover data available")

    window = f"{config.predawn_start:%H:%M}-{config.predawn_end:%H:%M}"
    selected = samples_in_window(
        samples, day, config.predawn_start, config.predawn_end, config.timezone
    )
    estimated = not selected

    if estimated:
        nearby = samples_near_window(
            samples, day, config.predawn_start, config.predawn_end, config.timezone,
            timedelta(hours=config.max_sample_gap_hours),
        )
        if not nearby:
            return FactorResult.absent(
                FactorKind.SKY, threshold, f"No cloud cover forecast near {window} on {day.isoformat()}"
            )
        start = local_datetime(day, config.predawn_start, config.timezone)
        end = local_datetime(day, config.predawn_end, config.timezone)
        middle = start + (end - start) / 2
        selected = sorted(nearby, key=lambda s: abs(s.timestamp - middle))[:ESTIMATE_SAMPLES]
        confidence = ESTIMATE_CONFIDENCE
    else:
        confidence = WINDOW_CONFIDENCE.get(len(selected), FULL_WINDOW_CONFIDENCE)

    avg_cloud = float(np.mean([s.cloud_cover for s in selected]))
    clearness = max(0.0, 100.0 - avg_cloud)
    meets = clearness >= threshold

    if estimated:
        detail = (
            f"Estimated {clearness:.0f}% clear from {len(selected)} samples outside "
            f"{window} (no in-window data)"
        )
    else:
        detail = f"{clearness:.0f}% clear during {window} ({len(selected)} samples, avg cloud {avg_cloud:.0f}%)"
    logger.debug(f"sky: {detail}")

    return FactorResult(
        kind=FactorKind.SKY,
        meets=meets,
        value=clearness,
        threshold=threshold,
        confidence=confidence,
        detail=detail,
        insufficient_data=estimated,
    )
