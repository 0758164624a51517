"""
Availability Index

Derives, from a list of calendar events:
- booked_days: every night in [start, end) of every valid event. The
  departure day itself is not a booked night.
- arrival_days: the first day of each event, unless the day before it is
  already booked. Such a day is a changeover inside a run of back-to-back
  stays, not a distinct "half day" arrival.

Built in O(total blocked days); no pairwise event comparison.
"""

import logging
from dataclasses import dataclass
from datetime import date, tzinfo
from typing import FrozenSet, Iterable, List, Optional

from ..models.calendar_event import CalendarEvent
from .date_range import DayLike, day_key, enumerate_days, parse_day, shift_day

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityIndex:
    booked_days: FrozenSet[str]
    arrival_days: FrozenSet[str]

    @classmethod
    def build(
        cls,
        events: Iterable[CalendarEvent],
        tz: tzinfo,
        horizon: Optional[date] = None
    ) -> "AvailabilityIndex":
        """
        Args:
            events: Feed and reservation events, in any order
            tz: Reference calendar used to project instants onto days
            horizon: Blocked runs are clamped to end at this day (exclusive)
        """
        booked = set()
        arrivals = set()
        dropped = 0

        for event in events:
            if event.start is None or event.end is None or not event.is_valid:
                dropped += 1
                continue

            start_day = day_key(event.start, tz)
            end_day = day_key(event.end, tz)
            if horizon is not None and parse_day(end_day) > horizon:
                end_day = horizon.isoformat()

            arrivals.add(start_day)
            booked.update(enumerate_days(start_day, end_day))

        if dropped:
            logger.debug(f"Dropped {dropped} event(s) with missing or inverted dates")

        arrivals = {day for day in arrivals if shift_day(day, -1) not in booked}

        return cls(booked_days=frozenset(booked), arrival_days=frozenset(arrivals))

    def blocked_days_in(self, start: DayLike, end_exclusive: DayLike) -> List[str]:
        return [day for day in enumerate_days(start, end_exclusive) if day in self.booked_days]

    def is_range_free(self, start: DayLike, end_exclusive: DayLike) -> bool:
        """
        True iff no night in [start, end_exclusive) is booked.

        A zero-night range is trivially free; callers must reject it as a
        booking request on their own.
        """
        return not any(day in self.booked_days for day in enumerate_days(start, end_exclusive))
