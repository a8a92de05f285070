"""Configuration for prediction thresholds, alarm criteria and credentials.

All tunable numbers live here so recalibration is a data change. Thresholds
have documented defaults; API credentials do not and fail fast when missing.

Example:
    >>> config = PredictionConfig.from_mapping({"temperature_diff_min_f": "4.5"})
    >>> config.temperature_diff_min_f
    4.5
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from datetime import time
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

FACTOR_NAMES = ("precipitation", "sky", "pressure", "temperature", "wave")

DEFAULT_WEIGHTS = {
    "precipitation": 0.25,
    "sky": 0.20,
    "pressure": 0.20,
    "temperature": 0.20,
    "wave": 0.15,
}

# Multiplier applied to the weighted probability by number of favorable factors
DEFAULT_BONUS_MULTIPLIERS = {3: 1.10, 4: 1.15, 5: 1.25}

# Confidence is capped at this fraction of the raw average, by favorable count
DEFAULT_CONFIDENCE_CAPS = {0: 0.30, 1: 0.50, 2: 0.70}

ENV_PREFIX = "DAWNPATROL_"
CREDENTIAL_KEYS = (
    "WINDALERT_TOKEN",
    "OPENWEATHER_API_KEY",
    "ECOWITT_APPLICATION_KEY",
    "ECOWITT_API_KEY",
    "ECOWITT_MAC",
    "NOAA_USER_AGENT",
)


class ConfigurationError(ValueError):
    """Raised when configuration is missing or invalid."""


def parse_time(value: Any) -> time:
    """Parse 'HH:MM' (or a time object) into a time."""
    if isinstance(value, time):
        return value
    try:
        hour, minute = str(value).strip().split(":")
        return time(int(hour), int(minute))
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Invalid time value {value!r}, expected HH:MM") from e


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"Invalid boolean value {value!r}")


def _coerce(name: str, value: Any, default: Any) -> Any:
    """Coerce a flat config value to the type of its default."""
    try:
        if isinstance(default, bool):
            return _parse_bool(value)
        if isinstance(default, time):
            return parse_time(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, str):
            return str(value)
    except (TypeError, ValueError) as e:
        if isinstance(e, ConfigurationError):
            raise
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from e
    return value


def _camel_to_snake(key: str) -> str:
    out = []
    for ch in key:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out).lstrip("_")


@dataclass(frozen=True)
class PredictionConfig:
    """Thresholds, weights and windows for the katabatic prediction model.

    Attributes:
        timezone: IANA zone used for all local-time windows
        precipitation_max_pct: Max precipitation probability still favorable
        clear_sky_min_pct: Minimum clear-sky percentage in the pre-dawn window
        pressure_change_min_hpa: Minimum 12 h pressure change magnitude
        pressure_neutral_band_hpa: +/- band classified as a stable trend
        pressure_lookback_hours: How far back the pressure comparison looks
        max_sample_gap_hours: Samples further than this from a factor's window
            are not used for it; a day beyond the forecast horizon is absent
        temperature_diff_min_f: Minimum mountain-valley temperature difference
        wave_score_min: Minimum wave/stability score
        weights: Factor weights, must sum to 1.0
        bonus_multipliers: Probability multiplier by favorable-factor count
        clear_dry_bonus: Points added when precipitation and sky both favorable
        wave_bonus: Points added when the wave factor is favorable
        confidence_caps: Confidence cap (fraction of average) by favorable count
        go_probability: Probability at or above which the call is GO
        marginal_probability: Probability at or above which the call is MARGINAL
        min_confidence: Below this confidence the call is always MARGINAL
        min_factor_confidence: Factors at or below this confidence are left out
            of the weighted probability (0 keeps every factor with any confidence)
    """

    timezone: str = "America/Denver"

    # Factor thresholds
    precipitation_max_pct: float = 25.0
    clear_sky_min_pct: float = 45.0
    pressure_change_min_hpa: float = 1.0
    pressure_neutral_band_hpa: float = 1.0
    pressure_lookback_hours: int = 12
    temperature_diff_min_f: float = 6.0
    temperature_max_pair_gap_hours: float = 3.0
    max_sample_gap_hours: float = 12.0
    wave_score_min: float = 60.0
    mixing_height_m: float = 2000.0

    # Synthesis
    weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    bonus_multipliers: dict[int, float] = field(
        default_factory=lambda: dict(DEFAULT_BONUS_MULTIPLIERS)
    )
    clear_dry_bonus: float = 5.0
    wave_bonus: float = 8.0
    confidence_caps: dict[int, float] = field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_CAPS)
    )
    go_probability: float = 70.0
    marginal_probability: float = 40.0
    min_confidence: float = 60.0
    min_factor_confidence: float = 0.0

    # Local-time windows
    predawn_start: time = time(2, 0)
    predawn_end: time = time(5, 0)
    decision_start: time = time(6, 0)
    decision_end: time = time(8, 0)
    temperature_reference: time = time(5, 0)
    refined_after: time = time(18, 0)

    # Verification
    good_wind_mph: float = 15.0
    marginal_wind_mph: float = 10.0
    high_probability: float = 70.0
    low_probability: float = 30.0
    downslope_direction: float = 315.0
    downslope_range: float = 90.0

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Check invariants.

        Raises:
            ConfigurationError: If weights, ranges or windows are invalid
        """
        problems = []

        missing = set(FACTOR_NAMES) - set(self.weights)
        if missing:
            problems.append(f"missing weights for {sorted(missing)}")
        total = sum(self.weights.values())
        if abs(total - 1.0) > 1e-6:
            problems.append(f"weights sum to {total:.3f}, expected 1.0")
        if any(w < 0 for w in self.weights.values()):
            problems.append("weights must be non-negative")

        for name in ("precipitation_max_pct", "clear_sky_min_pct", "wave_score_min",
                     "go_probability", "marginal_probability", "min_confidence",
                     "min_factor_confidence",
                     "high_probability", "low_probability"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                problems.append(f"{name}={value} outside 0-100")

        if self.marginal_probability > self.go_probability:
            problems.append("marginal_probability above go_probability")
        if self.low_probability > self.high_probability:
            problems.append("low_probability above high_probability")
        if self.marginal_wind_mph > self.good_wind_mph:
            problems.append("marginal_wind_mph above good_wind_mph")
        if self.predawn_start >= self.predawn_end:
            problems.append("predawn window is empty or inverted")
        if self.decision_start >= self.decision_end:
            problems.append("decision window is empty or inverted")
        if self.pressure_lookback_hours <= 0:
            problems.append("pressure_lookback_hours must be positive")
        if self.max_sample_gap_hours <= 0:
            problems.append("max_sample_gap_hours must be positive")
        if any(m <= 0 for m in self.bonus_multipliers.values()):
            problems.append("bonus multipliers must be positive")

        if problems:
            raise ConfigurationError("Invalid prediction config: " + "; ".join(problems))

    @property
    def decision_window_label(self) -> str:
        """Human-readable decision window, e.g. '06:00-08:00'."""
        return f"{self.decision_start:%H:%M}-{self.decision_end:%H:%M}"

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]] = None) -> "PredictionConfig":
        """Build a config from a flat key-value mapping.

        Keys match attribute names (snake_case or camelCase). Factor weights
        use ``weight_<factor>`` keys. Unknown keys are ignored.

        Raises:
            ConfigurationError: If a value cannot be coerced or the result is invalid
        """
        base = {f.name: f for f in fields(cls)}
        values: dict[str, Any] = {}
        weights = dict(DEFAULT_WEIGHTS)

        for raw_key, value in (mapping or {}).items():
            key = _camel_to_snake(raw_key)
            if key.startswith("weight_") and key[len("weight_"):] in FACTOR_NAMES:
                weights[key[len("weight_"):]] = _coerce(key, value, 0.0)
            elif key in base and key not in ("weights", "bonus_multipliers", "confidence_caps"):
                default = base[key].default
                values[key] = _coerce(key, value, default)
            else:
                logger.debug(f"Ignoring unknown config key: {raw_key}")

        return cls(weights=weights, **values)

    def with_overrides(self, **changes) -> "PredictionConfig":
        """Return a copy with some attributes replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class AlarmCriteria:
    """User-tunable thresholds for the live wind alarm.

    Attributes:
        minimum_average_speed: Average speed (mph) required over the window
        direction_consistency_threshold: Percent of samples in the preferred sector
        minimum_consecutive_points: Longest run of good points required
        direction_deviation_threshold: Max spread (degrees) tolerated around the mean
        preferred_direction: Center of the favorable sector (degrees)
        preferred_direction_range: Half-width of the favorable sector (degrees)
        use_wind_direction: Whether direction gates a good point
        alarm_enabled: Whether the alarm is armed
        alarm_time: Local wake-up check time
    """

    minimum_average_speed: float = 10.0
    direction_consistency_threshold: float = 70.0
    minimum_consecutive_points: int = 4
    direction_deviation_threshold: float = 45.0
    preferred_direction: float = 315.0
    preferred_direction_range: float = 45.0
    use_wind_direction: bool = True
    alarm_enabled: bool = False
    alarm_time: str = "05:00"

    def __post_init__(self):
        if self.minimum_average_speed < 0:
            raise ConfigurationError("minimum_average_speed must be >= 0")
        if not 0 <= self.direction_consistency_threshold <= 100:
            raise ConfigurationError("direction_consistency_threshold must be 0-100")
        if self.minimum_consecutive_points < 1:
            raise ConfigurationError("minimum_consecutive_points must be >= 1")
        if not 0 <= self.preferred_direction_range <= 180:
            raise ConfigurationError("preferred_direction_range must be 0-180")
        parse_time(self.alarm_time)

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]] = None) -> "AlarmCriteria":
        """Build criteria from a flat key-value mapping, defaults for absent keys.

        Example:
            >>> AlarmCriteria.from_mapping({"minimumAverageSpeed": 12}).minimum_average_speed
            12.0
        """
        base = {f.name: f.default for f in fields(cls)}
        values = {}
        for raw_key, value in (mapping or {}).items():
            key = _camel_to_snake(raw_key)
            if key in base:
                values[key] = _coerce(key, value, base[key])
            else:
                logger.debug(f"Ignoring unknown alarm key: {raw_key}")
        return cls(**values)


def load_credentials(
    env: Optional[Mapping[str, str]] = None,
    required: tuple[str, ...] = (),
) -> dict[str, str]:
    """Read provider credentials from the environment.

    Args:
        env: Mapping to read from (defaults to os.environ)
        required: Credential names (without prefix) that must be present

    Returns:
        Dict of credential name -> value for every key that is set

    Raises:
        ConfigurationError: Listing every required credential that is missing
    """
    env = os.environ if env is None else env
    credentials = {}
    for key in CREDENTIAL_KEYS:
        value = env.get(ENV_PREFIX + key, "").strip()
        if value:
            credentials[key] = value

    missing = [key for key in required if key not in credentials]
    if missing:
        names = ", ".join(ENV_PREFIX + key for key in missing)
        raise ConfigurationError(f"Missing required credentials: {names}")

    return credentials
