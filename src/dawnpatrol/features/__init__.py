"""Factor analyzers for katabatic prediction.

Each analyzer inspects an AggregateSnapshot for one local-time window and
returns a FactorResult. They are independent; only the synthesizer combines
them.

Analyzers:
- precipitation: max precipitation chance in the dawn window
- sky: pre-dawn clear-sky percentage
- pressure: 12 h pressure change at the primary location
- temperature: mountain-valley temperature differential
- wave: wave/stability enhancement score

live_wind is the separate sensor-side analyzer used by the alarm and by
verification.
"""

from dawnpatrol.features.base import FactorKind, FactorResult
from dawnpatrol.features.live_wind import LiveWindAnalysis, analyze_live_wind
from dawnpatrol.features.precipitation import analyze_precipitation
from dawnpatrol.features.pressure import analyze_pressure
from dawnpatrol.features.sky import analyze_sky
from dawnpatrol.features.temperature import analyze_temperature
from dawnpatrol.features.wave import UpperAirProfile, analyze_wave

__all__ = [
    "FactorKind",
    "FactorResult",
    "LiveWindAnalysis",
    "UpperAirProfile",
    "analyze_live_wind",
    "analyze_precipitation",
    "analyze_pressure",
    "analyze_sky",
    "analyze_temperature",
    "analyze_wave",
]
