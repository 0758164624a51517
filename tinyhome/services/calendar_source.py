"""
Remote iCal feed client.

Fetches the channel-manager export (Airbnb, Booking, ...) over HTTP and
parses every VEVENT into a CalendarEvent. Network and parse failures are
raised as FetchError; there is no fallback to an empty calendar.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, tzinfo
from typing import List, Optional

import httpx
from icalendar import Calendar

from ..exceptions import FetchError
from ..models.calendar_event import CalendarEvent
from ..utils.metrics import record_calendar_fetch
from .date_range import local_midnight

logger = logging.getLogger(__name__)


class CalendarSource(ABC):
    """Anything that can produce the remote list of blocked periods."""

    @abstractmethod
    def fetch(self) -> List[CalendarEvent]:
        """Return all events; raise FetchError on network or parse failure."""


def _to_instant(value, tz: tzinfo) -> datetime:
    """All-day values (date) become local midnight; naive datetimes are local."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=tz)
    if isinstance(value, date):
        return local_midnight(value, tz)
    raise ValueError(f"Unsupported date value: {value!r}")


def parse_ics(payload: bytes, tz: tzinfo) -> List[CalendarEvent]:
    """
    Parse raw iCalendar text into events sorted by start.

    Raises ValueError if the payload is not a calendar.
    """
    calendar = Calendar.from_ical(payload)
    events = []

    for component in calendar.walk("VEVENT"):
        dtstart = component.get("DTSTART")
        if dtstart is None:
            continue
        raw_start = dtstart.dt
        all_day = not isinstance(raw_start, datetime)
        start = _to_instant(raw_start, tz)

        dtend = component.get("DTEND")
        duration = component.get("DURATION")
        if dtend is not None:
            end = _to_instant(dtend.dt, tz)
        elif duration is not None:
            end = start + duration.dt
        elif all_day:
            # RFC 5545: an all-day event without DTEND lasts one day
            end = start + timedelta(days=1)
        else:
            end = start

        uid = component.get("UID")
        summary = component.get("SUMMARY")
        events.append(CalendarEvent(
            uid=str(uid) if uid is not None else None,
            summary=str(summary) if summary is not None else None,
            start=start,
            end=end,
            all_day=all_day,
            origin="feed",
        ))

    events.sort(key=lambda e: e.start)
    return events


class IcsCalendarSource(CalendarSource):
    """
    Fetch + parse an iCal URL with a fixed network timeout.

    `transport` lets tests swap in httpx.MockTransport.
    """

    def __init__(
        self,
        url: str,
        tz: tzinfo,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.url = url
        self.tz = tz
        self.timeout = timeout
        self.transport = transport

    def fetch(self) -> List[CalendarEvent]:
        if not self.url:
            record_calendar_fetch(success=False, duration=0.0)
            raise FetchError("Calendar feed URL is not configured (ICAL_URL)")

        start_time = time.perf_counter()
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport, follow_redirects=True) as client:
                response = client.get(self.url, headers={"Accept": "text/calendar"})
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            record_calendar_fetch(success=False, duration=time.perf_counter() - start_time)
            logger.error(f"Calendar feed returned HTTP {e.response.status_code}")
            raise FetchError(
                "Unable to fetch the calendar feed",
                details={"status_code": e.response.status_code}
            ) from e
        except httpx.HTTPError as e:
            record_calendar_fetch(success=False, duration=time.perf_counter() - start_time)
            logger.error(f"Calendar feed request failed: {e}")
            raise FetchError("Unable to fetch the calendar feed") from e

        try:
            events = parse_ics(response.content, self.tz)
        except (ValueError, KeyError) as e:
            record_calendar_fetch(success=False, duration=time.perf_counter() - start_time)
            logger.error(f"Calendar feed could not be parsed: {e}")
            raise FetchError("Unable to parse the calendar feed") from e

        duration = time.perf_counter() - start_time
        record_calendar_fetch(success=True, duration=duration)
        logger.info(f"Fetched {len(events)} event(s) from calendar feed in {duration * 1000:.0f}ms")
        return events
