"""View counts for events.

The stats service is the canonical source of unique views, but it may be
slow or down. ``FallbackViewCache`` keeps, for the lifetime of the process,
the client addresses this instance has seen per event; the figure shown is
the larger of the two, so a stats outage never drops a count to zero.
"""
import logging
import threading
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Iterable, Optional

from eventhub.clock import utc_now
from eventhub.config import settings
from eventhub.exceptions import StatsUnavailableError
from eventhub.models.event import Event
from eventhub.services.stats_client import StatsClient

logger = logging.getLogger(__name__)

UNKNOWN_ADDRESS = "0.0.0.0"


def event_uri(event_id: int) -> str:
    return f"/events/{event_id}"


class FallbackViewCache:
    """Thread-safe ``event_id -> {client address}`` map."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seen: dict[int, set[str]] = {}

    def add(self, event_id: int, address: str) -> int:
        with self._lock:
            addresses = self._seen.setdefault(event_id, set())
            addresses.add(address)
            return len(addresses)

    def count(self, event_id: int) -> int:
        with self._lock:
            return len(self._seen.get(event_id, ()))


class ViewsAggregator:
    def __init__(
        self,
        stats: StatsClient,
        cache: Optional[FallbackViewCache] = None,
        app_name: str = settings.APP_NAME,
        lookback: timedelta = timedelta(days=settings.STATS_LOOKBACK_DAYS),
    ):
        self.stats = stats
        self.cache = cache if cache is not None else FallbackViewCache()
        self.app_name = app_name
        self.lookback = lookback

    def record_hit(
        self,
        uri: str,
        client_address: Optional[str],
        event_id: Optional[int] = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """Count a view locally and forward it to the stats service; never raises."""
        address = (client_address or "").strip() or UNKNOWN_ADDRESS
        if event_id is not None:
            self.cache.add(event_id, address)
        try:
            self.stats.record_hit(self.app_name, uri, address, timestamp or utc_now())
        except StatsUnavailableError as exc:
            logger.warning("Stats hit dropped: %s", exc)

    def views_for(self, events: Iterable[Event], as_of: Optional[datetime] = None) -> dict[int, int]:
        """Unique views per event id: ``max(stats service, local fallback)``."""
        result = {event.id: self.cache.count(event.id) for event in events}
        if not result:
            return result

        uri_to_id = {event_uri(event_id): event_id for event_id in result}
        end = as_of or utc_now()
        try:
            stats = self.stats.query_views(end - self.lookback, end, list(uri_to_id), unique=True)
        except StatsUnavailableError as exc:
            logger.warning("Stats service unavailable, using fallback view counts: %s", exc)
            return result

        for stat in stats:
            event_id = uri_to_id.get(stat.uri.split("?", 1)[0])
            if event_id is not None:
                result[event_id] = max(result[event_id], stat.hits)
        return result


@lru_cache
def get_views_aggregator() -> ViewsAggregator:
    """Process-wide aggregator; overridden in tests via ``app.dependency_overrides``."""
    return ViewsAggregator(StatsClient(settings.STATS_SERVER_URL, timeout=settings.STATS_TIMEOUT_SECONDS))
