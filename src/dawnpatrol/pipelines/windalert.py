"""WindAlert / WeatherFlow spot graph (anemometer ground truth).

The graph endpoint answers in JSONP with parallel ``[epoch_ms, value]``
arrays. Wind is requested in kph and normalized to mph.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from dawnpatrol.cache.models import WindSample
from dawnpatrol.pipelines.http import get_json
from dawnpatrol.utils.base import ProviderError, SensorProvider
from dawnpatrol.utils.units import to_datetime, to_mph

logger = logging.getLogger(__name__)

WINDALERT_GRAPH_URL = "https://api.weatherflow.com/wxengine/rest/graph/getGraph"

# Soda Lake Dam 1
SODA_LAKE_SPOT_ID = 149264


class GraphResponse(BaseModel):
    wind_avg_data: list[list[Any]] = []
    wind_gust_data: list[list[Any]] = []
    wind_dir_data: list[list[Any]] = []


def _as_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_graph(payload: GraphResponse, unit: str = "kph") -> list[WindSample]:
    """Normalize a getGraph payload into wind samples.

    Raises:
        ValueError: If the payload has no average wind series
    """
    if not payload.wind_avg_data:
        raise ValueError("missing wind_avg_data")

    gusts = {row[0]: _as_float(row[1]) for row in payload.wind_gust_data if len(row) >= 2}
    directions = {row[0]: _as_float(row[1]) for row in payload.wind_dir_data if len(row) >= 2}

    samples = []
    for row in payload.wind_avg_data:
        if len(row) < 2:
            continue
        speed = _as_float(row[1])
        if speed is None:
            continue
        stamp = row[0]
        gust = gusts.get(stamp)
        samples.append(WindSample(
            timestamp=to_datetime(stamp),
            speed_mph=to_mph(speed, unit),
            direction=directions.get(stamp),
            gust_mph=to_mph(gust, unit) if gust is not None else None,
        ))
    return sorted(samples, key=lambda s: s.timestamp)


class WindAlertSensor(SensorProvider):
    """Anemometer history from a WindAlert spot."""

    name = "windalert"

    def __init__(
        self,
        token: str,
        spot_id: int = SODA_LAKE_SPOT_ID,
        timeout: float = 15,
    ):
        self.token = token
        self.spot_id = spot_id
        self.timeout = timeout

    def fetch_history(
        self, start: datetime, end: Optional[datetime] = None
    ) -> list[WindSample]:
        end = end or datetime.now(timezone.utc)
        now = datetime.now(timezone.utc)
        params = {
            "spot_id": self.spot_id,
            "fields": "wind",
            "format": "json",
            "type": "dataonly",
            "units_wind": "kph",
            "time_start_offset_hours": -max(1, int((now - start).total_seconds() // 3600) + 1),
            "time_end_offset_hours": 0,
            "show_virtual_obs": "true",
            "wf_token": self.token,
        }
        data = get_json(self.name, WINDALERT_GRAPH_URL, params=params, timeout=self.timeout)

        try:
            samples = parse_graph(GraphResponse.model_validate(data))
        except (ValidationError, ValueError) as e:
            raise ProviderError(self.name, f"malformed graph payload: {e}") from e

        samples = [s for s in samples if start <= s.timestamp <= end]
        logger.info(f"WindAlert: {len(samples)} wind samples for spot {self.spot_id}")
        return samples
