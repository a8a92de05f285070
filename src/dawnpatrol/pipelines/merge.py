"""Merge forecast series of different resolutions.

NOAA publishes 12-hour periods next to an hourly feed, and hourly providers
fill fields NOAA lacks (cloud cover, pressure). Series are merged on the
finer time axis: for each fine sample, the nearest coarse sample within the
tolerance fills the fields the fine sample is missing. Values present in the
fine series always win.
"""

import logging
from dataclasses import fields
from datetime import timedelta
from typing import Sequence

import pandas as pd

from dawnpatrol.cache.models import WeatherSample

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = timedelta(hours=6)

SAMPLE_FIELDS = [f.name for f in fields(WeatherSample) if f.name != "timestamp"]


def samples_to_frame(samples: Sequence[WeatherSample]) -> pd.DataFrame:
    """Convert samples to a DataFrame indexed by UTC timestamp column."""
    if not samples:
        return pd.DataFrame(columns=["timestamp", *SAMPLE_FIELDS])
    df = pd.DataFrame([{f: getattr(s, f) for f in ["timestamp", *SAMPLE_FIELDS]} for s in samples])
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    for col in SAMPLE_FIELDS:
        df[col] = pd.to_numeric(df[col], errors="coerce").astype("float64")
    return df.sort_values("timestamp").reset_index(drop=True)


def frame_to_samples(df: pd.DataFrame) -> list[WeatherSample]:
    """Convert a DataFrame back to samples, NaN becoming None."""
    samples = []
    for row in df.itertuples(index=False):
        values = {}
        for col in SAMPLE_FIELDS:
            value = getattr(row, col)
            values[col] = None if pd.isna(value) else float(value)
        samples.append(WeatherSample(timestamp=row.timestamp.to_pydatetime(), **values))
    return samples


def median_spacing(samples: Sequence[WeatherSample]) -> timedelta:
    """Median gap between consecutive samples (infinite for < 2 samples)."""
    if len(samples) < 2:
        return timedelta.max
    times = pd.Series(sorted(s.timestamp for s in samples))
    return times.diff().dropna().median().to_pytimedelta()


def merge_period_and_hourly(
    periods: Sequence[WeatherSample],
    hourly: Sequence[WeatherSample],
    tolerance: timedelta = DEFAULT_TOLERANCE,
) -> list[WeatherSample]:
    """Merge coarse period samples into an hourly series.

    Args:
        periods: Coarse samples (e.g., NOAA 12-hour periods)
        hourly: Fine samples; their values take precedence
        tolerance: Maximum distance for a nearest-timestamp match

    Returns:
        Time-ordered merged samples. Coarse samples farther than half the
        fine spacing from every fine sample are kept as-is so gaps stay covered.
    """
    if not hourly:
        return sorted(periods, key=lambda s: s.timestamp)
    if not periods:
        return sorted(hourly, key=lambda s: s.timestamp)

    fine = samples_to_frame(hourly)
    coarse = samples_to_frame(periods)

    merged = pd.merge_asof(
        fine,
        coarse,
        on="timestamp",
        direction="nearest",
        tolerance=pd.Timedelta(tolerance),
        suffixes=("", "_fill"),
    )
    for col in SAMPLE_FIELDS:
        merged[col] = merged[col].combine_first(merged[f"{col}_fill"])
    merged = merged[["timestamp", *SAMPLE_FIELDS]]

    # Coarse samples that do not line up with a fine sample fill the gaps
    reach = min(tolerance, median_spacing(hourly) / 2)
    nearest_fine = pd.merge_asof(
        coarse[["timestamp"]],
        fine[["timestamp"]].assign(_fine=fine["timestamp"]),
        on="timestamp",
        direction="nearest",
        tolerance=pd.Timedelta(reach),
    )
    uncovered = coarse[nearest_fine["_fine"].isna().to_numpy()]
    if not uncovered.empty:
        logger.debug(f"Keeping {len(uncovered)} period samples outside hourly coverage")
        merged = pd.concat([merged, uncovered], ignore_index=True)

    merged = merged.sort_values("timestamp").reset_index(drop=True)
    return frame_to_samples(merged)


def merge_series(
    a: Sequence[WeatherSample],
    b: Sequence[WeatherSample],
    tolerance: timedelta = DEFAULT_TOLERANCE,
) -> list[WeatherSample]:
    """Merge two series, letting the higher-resolution one win.

    Ties go to ``a``.
    """
    if median_spacing(b) < median_spacing(a):
        return merge_period_and_hourly(a, b, tolerance)
    return merge_period_and_hourly(b, a, tolerance)
