"""Data models shared by the aggregator, analyzers and store.

All models are frozen: a fetch cycle produces new values and the next cycle
supersedes them. Units are canonical (mph, degrees F, hPa, percent, miles).
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from dawnpatrol.utils.units import to_datetime


class Reliability(str, Enum):
    """Coarse trust level of an aggregate snapshot."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class LocationRole(str, Enum):
    """What a location contributes to the model."""

    VALLEY = "valley"
    MOUNTAIN = "mountain"
    SENSOR = "sensor"


@dataclass(frozen=True)
class Location:
    """Named forecast or sensor location."""

    name: str
    lat: float
    lon: float
    role: LocationRole = LocationRole.VALLEY
    elevation_m: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "lat": self.lat,
            "lon": self.lon,
            "role": self.role.value,
            "elevation_m": self.elevation_m,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Location":
        return cls(
            name=d["name"],
            lat=d["lat"],
            lon=d["lon"],
            role=LocationRole(d.get("role", "valley")),
            elevation_m=d.get("elevation_m"),
        )


@dataclass(frozen=True)
class WeatherSample:
    """One normalized forecast/observation point for one location.

    Attributes:
        timestamp: Aware datetime of the sample
        temperature_f: Air temperature (F)
        humidity: Relative humidity (%)
        pressure_hpa: Sea-level pressure (hPa)
        wind_speed_mph: Sustained wind speed (mph)
        wind_direction: Direction wind is coming from (degrees)
        precipitation_probability: Chance of precipitation (%)
        cloud_cover: Cloud cover (%)
        visibility_mi: Visibility (miles)
        feels_like_f: Apparent temperature (F)
        uv_index: UV index
    """

    timestamp: datetime
    temperature_f: Optional[float] = None
    humidity: Optional[float] = None
    pressure_hpa: Optional[float] = None
    wind_speed_mph: Optional[float] = None
    wind_direction: Optional[float] = None
    precipitation_probability: Optional[float] = None
    cloud_cover: Optional[float] = None
    visibility_mi: Optional[float] = None
    feels_like_f: Optional[float] = None
    uv_index: Optional[float] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "WeatherSample":
        values = dict(d)
        values["timestamp"] = to_datetime(values["timestamp"])
        return cls(**values)


@dataclass(frozen=True)
class WindSample:
    """One anemometer reading from a sensor station (mph, degrees)."""

    timestamp: datetime
    speed_mph: float
    direction: Optional[float] = None
    gust_mph: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "speed_mph": self.speed_mph,
            "direction": self.direction,
            "gust_mph": self.gust_mph,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "WindSample":
        return cls(
            timestamp=to_datetime(d["timestamp"]),
            speed_mph=float(d["speed_mph"]),
            direction=d.get("direction"),
            gust_mph=d.get("gust_mph"),
        )


@dataclass(frozen=True)
class LocationSeries:
    """A location plus its time-ordered samples.

    An empty series means every provider failed for this location. It is kept
    in the snapshot so analyzers can report insufficient data for it.
    """

    location: Location
    samples: tuple[WeatherSample, ...] = ()
    source: Optional[str] = None
    primary_source: bool = False

    def __post_init__(self):
        ordered = tuple(sorted(self.samples, key=lambda s: s.timestamp))
        object.__setattr__(self, "samples", ordered)

    @property
    def is_empty(self) -> bool:
        return len(self.samples) == 0

    def __len__(self) -> int:
        return len(self.samples)

    def to_dict(self) -> dict:
        return {
            "location": self.location.to_dict(),
            "samples": [s.to_dict() for s in self.samples],
            "source": self.source,
            "primary_source": self.primary_source,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "LocationSeries":
        return cls(
            location=Location.from_dict(d["location"]),
            samples=tuple(WeatherSample.from_dict(s) for s in d.get("samples", [])),
            source=d.get("source"),
            primary_source=d.get("primary_source", False),
        )


@dataclass(frozen=True)
class AggregateSnapshot:
    """All location series fetched together in one refresh cycle."""

    series: tuple[LocationSeries, ...]
    fetched_at: datetime
    source: str = "none"
    reliability: Reliability = Reliability.LOW
    errors: tuple[str, ...] = field(default=())

    def __str__(self) -> str:
        counts = ", ".join(f"{s.location.name}={len(s)}" for s in self.series)
        return (
            f"AggregateSnapshot({self.reliability.value}, source={self.source}, "
            f"fetched_at={self.fetched_at.isoformat()}, samples=[{counts}])"
        )

    @property
    def is_empty(self) -> bool:
        """True when no location returned any data."""
        return all(s.is_empty for s in self.series)

    def series_for(self, name: str) -> Optional[LocationSeries]:
        """Get the series for a location by name."""
        for s in self.series:
            if s.location.name == name:
                return s
        return None

    def by_role(self, role: LocationRole) -> list[LocationSeries]:
        """All series whose location has the given role, in snapshot order."""
        return [s for s in self.series if s.location.role == role]

    def primary(self, role: LocationRole) -> Optional[LocationSeries]:
        """First non-empty series for a role, else the first series for it."""
        candidates = self.by_role(role)
        for s in candidates:
            if not s.is_empty:
                return s
        return candidates[0] if candidates else None

    def all_samples(self) -> list[WeatherSample]:
        return [sample for s in self.series for sample in s.samples]

    def to_dict(self) -> dict[str, Any]:
        return {
            "series": [s.to_dict() for s in self.series],
            "fetched_at": self.fetched_at.isoformat(),
            "source": self.source,
            "reliability": self.reliability.value,
            "errors": list(self.errors),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "AggregateSnapshot":
        return cls(
            series=tuple(LocationSeries.from_dict(s) for s in d.get("series", [])),
            fetched_at=to_datetime(d["fetched_at"]),
            source=d.get("source", "none"),
            reliability=Reliability(d.get("reliability", "low")),
            errors=tuple(d.get("errors", [])),
        )


@dataclass
class FetchLog:
    """Log entry for data fetches."""

    source: str  # 'forecast', 'sensor'
    timestamp: datetime
    status: str  # 'success', 'degraded', 'error'
    records_added: int
    duration_ms: int
    error_message: Optional[str] = None


# Soda Lake is the riding spot; Morrison sits just below the foothills and
# Nederland is the upslope source region for the drainage flow.
SODA_LAKE = Location("Soda Lake", 39.6533, -105.1942, LocationRole.VALLEY, 1700.0)
MORRISON = Location("Morrison", 39.6547, -105.1956, LocationRole.VALLEY, 1740.0)
NEDERLAND = Location("Nederland", 39.9614, -105.5111, LocationRole.MOUNTAIN, 2540.0)

DEFAULT_LOCATIONS = [SODA_LAKE, MORRISON, NEDERLAND]
