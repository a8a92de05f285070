"""Wave/stability enhancement factor.

Mountain waves forced by moderate westerly flow over the Front Range can
couple down to the surface and reinforce the drainage flow. The scoring is
deterministic:

- Surface indicators from the mountain location (always available when the
  mountain has wind data): moderate transport wind, westerly sector, cold air.
- Froude-number reasoning when an upper-air profile is supplied:
  Fr = U / (N * H), with N the Brunt-Vaisala frequency. Fr between 0.4 and
  0.6 is the optimal regime for organized, surface-coupled waves. These
  points are added to the surface points and the total is capped at 100.

Without upper-air data the surface score stands alone at reduced confidence;
without mountain wind data the factor reports insufficient data.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from dawnpatrol.cache.models import AggregateSnapshot, LocationRole, WeatherSample
from dawnpatrol.features.base import FactorKind, FactorResult
from dawnpatrol.features.windows import local_datetime, nearest_sample, samples_in_window
from dawnpatrol.utils.config import PredictionConfig
from dawnpatrol.utils.geo import within_sector
from dawnpatrol.utils.units import to_mph

logger = logging.getLogger(__name__)

GRAVITY = 9.81  # m/s^2
STANDARD_TEMP_K = 288.15
DRY_ADIABATIC_LAPSE = 0.0098  # K/m

OPTIMAL_FR = (0.4, 0.6)
NEAR_FR = (0.3, 0.7)
BROAD_FR = (0.2, 0.8)

# Westerly sector favorable for Front Range waves
WAVE_SECTOR_CENTER = 270.0
WAVE_SECTOR_HALF_WIDTH = 45.0

PROFILE_CONFIDENCE = 75
SURFACE_ONLY_CONFIDENCE = 40


@dataclass(frozen=True)
class UpperAirProfile:
    """Upper-air inputs for the Froude analysis.

    Attributes:
        transport_wind_ms: Cross-barrier wind speed at ridge level (m/s)
        lapse_rate_k_per_m: Environmental lapse rate (positive when cooling with height)
        mixing_height_m: Depth of the flow layer; defaults to config.mixing_height_m
    """

    transport_wind_ms: float
    lapse_rate_k_per_m: float
    mixing_height_m: Optional[float] = None


def brunt_vaisala(lapse_rate_k_per_m: float) -> float:
    """Brunt-Vaisala frequency N (1/s); 0 for neutral or unstable profiles."""
    return math.sqrt(max(0.0, GRAVITY / STANDARD_TEMP_K * (DRY_ADIABATIC_LAPSE - lapse_rate_k_per_m)))


def froude_number(wind_ms: float, stability: float, height_m: float) -> Optional[float]:
    """Fr = U / (N * H); None when the atmosphere has no stability."""
    if stability <= 0 or height_m <= 0:
        return None
    return wind_ms / (stability * height_m)


def _in(value: Optional[float], bounds: tuple[float, float]) -> bool:
    return value is not None and bounds[0] <= value <= bounds[1]


def surface_score(sample: WeatherSample) -> tuple[int, list[str]]:
    """Points from surface indicators at the mountain location."""
    score = 0
    notes = []
    speed = sample.wind_speed_mph
    if speed is not None and 5 < speed < 15:
        score += 30
        notes.append(f"moderate transport wind {speed:.0f} mph")
    if sample.wind_direction is not None and 225 <= sample.wind_direction <= 315:
        score += 20
        notes.append(f"westerly flow {sample.wind_direction:.0f} deg")
    if sample.temperature_f is not None and sample.temperature_f < 40:
        score += 15
        notes.append(f"cold air {sample.temperature_f:.0f}F")
    return score, notes


def froude_score(
    fr: Optional[float],
    wind_mph: float,
    stability: float,
    direction_consistency: float,
) -> tuple[int, list[str]]:
    """Points from the Froude regime, wave amplitude, organization and coupling."""
    score = 0
    notes = []

    if _in(fr, OPTIMAL_FR):
        score += 40
    elif _in(fr, NEAR_FR):
        score += 30
    elif _in(fr, BROAD_FR):
        score += 20
    notes.append("Fr undefined (neutral profile)" if fr is None else f"Fr={fr:.2f}")

    if _in(fr, OPTIMAL_FR) and wind_mph >= 10:
        amplitude, points = "high", 25
    elif _in(fr, NEAR_FR) and wind_mph >= 6:
        amplitude, points = "moderate", 15
    else:
        amplitude, points = "low", 5
    score += points
    notes.append(f"{amplitude} amplitude")

    if _in(fr, OPTIMAL_FR) and direction_consistency > 0.7:
        organization, points = "organized", 20
    elif _in(fr, BROAD_FR):
        organization, points = "mixed", 10
    else:
        organization, points = "chaotic", 0
    score += points
    notes.append(f"{organization} waves")

    if stability > 0.01:
        coupling, points = "strong", 15
    elif stability > 0.005:
        coupling, points = "moderate", 10
    else:
        coupling, points = "weak", 5
    score += points
    notes.append(f"{coupling} surface coupling")

    return score, notes


def analyze_wave(
    snapshot: AggregateSnapshot,
    config: PredictionConfig,
    day: date,
    upper_air: Optional[UpperAirProfile] = None,
) -> FactorResult:
    """Score wave/stability enhancement for the dawn of day.

    Args:
        snapshot: Current aggregate snapshot
        config: Prediction thresholds
        day: Local calendar day being predicted
        upper_air: Optional upper-air profile enabling the Froude analysis

    Returns:
        FactorResult with the 0-100 score as value
    """
    threshold = config.wave_score_min
    series = snapshot.primary(LocationRole.MOUNTAIN)
    samples = [s for s in series.samples if s.wind_speed_mph is not None] if series else []

    if not samples:
        return FactorResult.absent(
            FactorKind.WAVE,
            threshold,
            "Insufficient data: no mountain wind data, wave enhancement not assessed",
        )

    reference = local_datetime(day, config.predawn_end, config.timezone)
    sample = nearest_sample(samples, reference, timedelta(hours=config.max_sample_gap_hours))
    if sample is None:
        return FactorResult.absent(
            FactorKind.WAVE,
            threshold,
            f"Insufficient data: no mountain wind forecast near {reference:%H:%M} on {day.isoformat()}",
        )
    base, notes = surface_score(sample)

    if upper_air is None:
        score = base
        confidence = SURFACE_ONLY_CONFIDENCE
        detail = (
            f"Surface-only estimate {score}/100 (no upper-air data)"
            + (f": {', '.join(notes)}" if notes else "")
        )
    else:
        night = samples_in_window(
            samples, day, config.predawn_start, config.predawn_end, config.timezone
        ) or [sample]
        with_dir = [s for s in night if s.wind_direction is not None]
        consistency = (
            sum(within_sector(s.wind_direction, WAVE_SECTOR_CENTER, WAVE_SECTOR_HALF_WIDTH)
                for s in with_dir) / len(with_dir)
            if with_dir else 0.0
        )
        height = upper_air.mixing_height_m or config.mixing_height_m
        stability = brunt_vaisala(upper_air.lapse_rate_k_per_m)
        fr = froude_number(upper_air.transport_wind_ms, stability, height)
        wind_mph = to_mph(upper_air.transport_wind_ms, "ms")
        points, froude_notes = froude_score(fr, wind_mph, stability, consistency)
        score = min(100, base + points)
        confidence = PROFILE_CONFIDENCE
        detail = f"Wave score {score}/100: {', '.join(froude_notes + notes)}"

    score = min(100, max(0, score))
    if score >= 80:
        enhancement = "strong"
    elif score >= 60:
        enhancement = "moderate"
    elif score >= 40:
        enhancement = "weak"
    else:
        enhancement = "none"
    logger.debug(f"wave: {detail}")

    return FactorResult(
        kind=FactorKind.WAVE,
        meets=score >= threshold,
        value=float(score),
        threshold=threshold,
        confidence=confidence,
        detail=detail,
        trend=enhancement,
        insufficient_data=upper_air is None,
    )
