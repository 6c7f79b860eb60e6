"""HTTP client for the external view-statistics service.

Two calls: ``POST /hit`` records one page view, ``GET /stats`` returns
aggregated hit counts per URI. Every failure (timeout, transport error,
non-2xx status, body that does not parse) surfaces as
``StatsUnavailableError`` so callers have a single thing to catch.
"""
import logging
from datetime import datetime
from typing import Optional

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError as PydanticValidationError

from eventhub.clock import format_wire
from eventhub.exceptions import StatsUnavailableError

logger = logging.getLogger(__name__)


class ViewStats(BaseModel):
    app: Optional[str] = None
    uri: str
    hits: int


_VIEW_STATS_LIST = TypeAdapter(list[ViewStats])


class StatsClient:
    def __init__(self, base_url: str, timeout: float = 2.0, client: Optional[httpx.Client] = None):
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def record_hit(self, app: str, uri: str, ip: str, timestamp: datetime) -> None:
        payload = {"app": app, "uri": uri, "ip": ip, "timestamp": format_wire(timestamp)}
        try:
            response = self._client.post("/hit", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StatsUnavailableError(f"Hit for {uri} was not recorded: {exc}") from exc
        logger.debug("Recorded hit %s", payload)

    def query_views(
        self,
        start: datetime,
        end: datetime,
        uris: Optional[list[str]] = None,
        unique: bool = False,
    ) -> list[ViewStats]:
        params = {
            "start": format_wire(start),
            "end": format_wire(end),
            "unique": "true" if unique else "false",
        }
        if uris:
            params["uris"] = ",".join(uris)
        try:
            response = self._client.get("/stats", params=params)
            response.raise_for_status()
            return _VIEW_STATS_LIST.validate_python(response.json())
        except httpx.HTTPError as exc:
            raise StatsUnavailableError(f"Stats request failed: {exc}") from exc
        except (ValueError, PydanticValidationError) as exc:
            raise StatsUnavailableError(f"Malformed stats response: {exc}") from exc

    def close(self) -> None:
        self._client.close()
