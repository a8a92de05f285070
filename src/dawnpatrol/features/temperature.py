"""Mountain-valley temperature differential factor.

Cold air pooled on the mountain relative to the valley is the density
difference that drives the downslope flow.
"""

import logging
from datetime import date, timedelta

from dawnpatrol.cache.models import AggregateSnapshot, LocationRole
from dawnpatrol.features.base import FactorKind, FactorResult
from dawnpatrol.features.windows import local_datetime, nearest_sample
from dawnpatrol.utils.config import PredictionConfig

logger = logging.getLogger(__name__)

PAIRED_CONFIDENCE = 80
# Samples exist for both locations but far from the reference time
LOOSE_PAIR_CONFIDENCE = 70


def analyze_temperature(
    snapshot: AggregateSnapshot,
    config: PredictionConfig,
    day: date,
) -> FactorResult:
    """Score the mountain-valley temperature difference before dawn on day.

    Both temperatures are taken at the samples nearest the reference time
    (05:00 local by default). Confidence is 0 unless both locations have a
    sample within config.max_sample_gap_hours of it.

    Returns:
        FactorResult with |mountain - valley| in degrees F as value
    """
    threshold = config.temperature_diff_min_f
    reference = local_datetime(day, config.temperature_reference, config.timezone)

    def temps(role: LocationRole):
        series = snapshot.primary(role)
        if series is None:
            return None, []
        return series.location.name, [s for s in series.samples if s.temperature_f is not None]

    mountain_name, mountain = temps(LocationRole.MOUNTAIN)
    valley_name, valley = temps(LocationRole.VALLEY)

    if not mountain or not valley:
        missing = [role for role, data in (("mountain", mountain), ("valley", valley)) if not data]
        return FactorResult.absent(
            FactorKind.TEMPERATURE,
            threshold,
            f"No temperature data for {' and '.join(missing)} location",
        )

    horizon = timedelta(hours=config.max_sample_gap_hours)
    m = nearest_sample(mountain, reference, horizon)
    v = nearest_sample(valley, reference, horizon)
    if m is None or v is None:
        return FactorResult.absent(
            FactorKind.TEMPERATURE,
            threshold,
            f"No temperature forecast near {reference:%H:%M} on {day.isoformat()}",
        )

    max_gap = timedelta(hours=config.temperature_max_pair_gap_hours)
    loose = (
        abs(m.timestamp - reference) > max_gap
        or abs(v.timestamp - reference) > max_gap
    )

    diff = m.temperature_f - v.temperature_f
    magnitude = abs(diff)
    meets = magnitude >= threshold
    detail = (
        f"{mountain_name} {m.temperature_f:.0f}F vs {valley_name} {v.temperature_f:.0f}F "
        f"({diff:+.1f}F, need {threshold:.1f}F)"
    )
    if loose:
        detail += f"; nearest samples more than {config.temperature_max_pair_gap_hours:.0f}h from {reference:%H:%M}"
    logger.debug(f"temperature: {detail}")

    return FactorResult(
        kind=FactorKind.TEMPERATURE,
        meets=meets,
        value=magnitude,
        threshold=threshold,
        confidence=LOOSE_PAIR_CONFIDENCE if loose else PAIRED_CONFIDENCE,
        detail=detail,
        trend="mountain colder" if diff < 0 else "mountain warmer",
    )
