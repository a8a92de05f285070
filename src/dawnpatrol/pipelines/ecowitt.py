"""Ecowitt weather station history (anemometer ground truth).

The v3 history endpoint returns each channel as a unit label plus a map of
epoch-second -> value strings. A non-zero ``code`` is an API error even
though the HTTP status is 200.

API docs: https://doc.ecowitt.net/web/#/apiv3en
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ValidationError

from dawnpatrol.cache.models import WindSample
from dawnpatrol.pipelines.http import get_json
from dawnpatrol.utils.base import ProviderError, SensorProvider
from dawnpatrol.utils.units import UnknownUnitError, to_datetime, to_mph

logger = logging.getLogger(__name__)

ECOWITT_HISTORY_URL = "https://api.ecowitt.net/api/v3/device/history"

# Ecowitt wind_speed_unitid: 6 = m/s, 7 = km/h, 8 = knots, 9 = mph
WIND_UNIT_MS = 6

_UNIT_ALIASES = {"m/s": "ms", "km/h": "kmh", "knots": "knots", "mph": "mph", "kn": "knots"}


class Channel(BaseModel):
    unit: str = ""
    list: dict[str, Optional[str]] = {}


class WindBlock(BaseModel):
    wind_speed: Channel = Channel()
    wind_gust: Channel = Channel()
    wind_direction: Channel = Channel()


class HistoryData(BaseModel):
    wind: WindBlock = WindBlock()


class HistoryResponse(BaseModel):
    code: int
    msg: str = ""
    data: HistoryData | list = HistoryData()


def _values(channel: Channel) -> dict[int, float]:
    out = {}
    for stamp, raw in channel.list.items():
        if raw in (None, ""):
            continue
        out[int(stamp)] = float(raw)
    return out


def parse_history(payload: HistoryResponse) -> list[WindSample]:
    """Normalize an Ecowitt history payload into wind samples.

    Raises:
        UnknownUnitError: If a speed channel reports an unknown unit
    """
    if not isinstance(payload.data, HistoryData):
        # Ecowitt returns an empty list when the range has no data
        return []

    wind = payload.data.wind
    speed_unit = _UNIT_ALIASES.get(wind.wind_speed.unit, wind.wind_speed.unit)
    gust_label = wind.wind_gust.unit or wind.wind_speed.unit
    gust_unit = _UNIT_ALIASES.get(gust_label, gust_label)
    speeds = _values(wind.wind_speed)
    gusts = _values(wind.wind_gust)
    directions = _values(wind.wind_direction)

    samples = []
    for stamp in sorted(speeds):
        speed = to_mph(speeds[stamp], speed_unit)
        if speed < 0:
            continue
        gust = gusts.get(stamp)
        samples.append(WindSample(
            timestamp=to_datetime(stamp),
            speed_mph=speed,
            direction=directions.get(stamp),
            gust_mph=to_mph(gust, gust_unit) if gust is not None else None,
        ))
    return samples


class EcowittSensor(SensorProvider):
    """Anemometer history from an Ecowitt gateway."""

    name = "ecowitt"

    def __init__(
        self,
        application_key: str,
        api_key: str,
        mac: str,
        cycle_type: str = "5min",
        timeout: float = 10,
    ):
        self.application_key = application_key
        self.api_key = api_key
        self.mac = mac
        self.cycle_type = cycle_type
        self.timeout = timeout

    def fetch_history(
        self, start: datetime, end: Optional[datetime] = None
    ) -> list[WindSample]:
        end = end or datetime.now(timezone.utc)
        params = {
            "application_key": self.application_key,
            "api_key": self.api_key,
            "mac": self.mac,
            "start_date": start.strftime("%Y-%m-%d %H:%M:%S"),
            "end_date": end.strftime("%Y-%m-%d %H:%M:%S"),
            "cycle_type": self.cycle_type,
            "call_back": "wind",
            "wind_speed_unitid": WIND_UNIT_MS,
        }
        data = get_json(self.name, ECOWITT_HISTORY_URL, params=params, timeout=self.timeout)

        try:
            payload = HistoryResponse.model_validate(data)
        except ValidationError as e:
            raise ProviderError(self.name, f"malformed payload: {e}") from e

        if payload.code != 0:
            raise ProviderError(self.name, f"API error {payload.code}: {payload.msg}")

        try:
            samples = parse_history(payload)
        except (UnknownUnitError, ValueError) as e:
            raise ProviderError(self.name, f"unusable wind data: {e}") from e

        samples = [s for s in samples if start <= s.timestamp <= end]
        logger.info(f"Ecowitt: {len(samples)} wind samples {start:%H:%M}-{end:%H:%M}")
        return samples
