"""
Time-boxed cache of the remote calendar feed.

- Served from memory while now - timestamp < ttl
- Refetched when stale, or after invalidate() (called on every reservation write)
- Fetch failures propagate; a stale copy is never served in their place
- Concurrent stale reads are coalesced: the lock makes at most one fetch run
  at a time and later readers see its result
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from ..models.calendar_event import CalendarEvent
from ..utils.clock import EPOCH
from ..utils.metrics import record_calendar_lookup
from .calendar_source import CalendarSource

logger = logging.getLogger(__name__)

ORIGIN_CACHE = "cache"
ORIGIN_REMOTE = "remote"


class CalendarCache:

    def __init__(self, ttl: timedelta = timedelta(minutes=15)):
        self.ttl = ttl
        self.timestamp: datetime = EPOCH
        self.events: Optional[List[CalendarEvent]] = None
        self._lock = threading.Lock()

    def is_fresh(self, now: datetime) -> bool:
        return self.events is not None and (now - self.timestamp) < self.ttl

    def lookup(self, now: datetime, source: CalendarSource) -> Tuple[List[CalendarEvent], str]:
        """Return (events, origin) where origin is "cache" or "remote"."""
        with self._lock:
            if self.is_fresh(now):
                record_calendar_lookup(ORIGIN_CACHE)
                return list(self.events), ORIGIN_CACHE

            events = source.fetch()
            self.events = list(events)
            self.timestamp = now
            record_calendar_lookup(ORIGIN_REMOTE)
            return list(self.events), ORIGIN_REMOTE

    def get(self, now: datetime, source: CalendarSource) -> List[CalendarEvent]:
        events, _ = self.lookup(now, source)
        return events

    def invalidate(self) -> None:
        """Force the next get() to refetch, regardless of TTL."""
        with self._lock:
            self.timestamp = EPOCH
        logger.debug("Calendar cache invalidated")

    def describe(self, now: datetime) -> dict:
        """Snapshot for the readiness probe"""
        if self.events is None:
            return {"status": "empty"}
        age = (now - self.timestamp).total_seconds()
        return {
            "status": "fresh" if self.is_fresh(now) else "stale",
            "events": len(self.events),
            "age_seconds": round(age, 1),
        }
