"""
Calendar-day arithmetic shared by pricing and availability.

A day key is a "YYYY-MM-DD" string in the property's reference calendar.
All blocking, arrival and seasonal-price lookups are done on day keys, never
on instants, so a UTC timestamp that crosses midnight cannot shift a stay.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterator, Union

DayKey = str

DayLike = Union[str, date]


def parse_day(value: DayLike) -> date:
    """Parse a day key (or pass a date through). Raises ValueError on bad input."""
    if isinstance(value, datetime):
        raise ValueError(f"Expected a calendar day, got an instant: {value!r}")
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def format_day(d: date) -> DayKey:
    return d.isoformat()


def parse_instant(raw: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 instant such as "2025-12-15T23:00:00.000Z".

    Naive results are returned as-is; callers decide which zone they mean.
    """
    if isinstance(raw, datetime):
        return raw
    text = str(raw).strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def day_key(instant: datetime, tz: tzinfo) -> DayKey:
    """Project an instant onto its local calendar day in `tz`."""
    if instant.tzinfo is None:
        return instant.date().isoformat()
    return instant.astimezone(tz).date().isoformat()


def local_day_from_instant(raw: Union[str, datetime], tz: tzinfo) -> DayKey:
    """Local calendar day of a client-supplied instant (used for arrival days)."""
    return day_key(parse_instant(raw), tz)


def utc_day_from_instant(raw: Union[str, datetime]) -> DayKey:
    """
    First ten characters of the ISO string, i.e. the UTC date (used for departure days).

    Validated so that garbage never reaches the store.
    """
    if isinstance(raw, datetime):
        raw = raw.astimezone(timezone.utc).isoformat() if raw.tzinfo else raw.isoformat()
    head = str(raw)[:10]
    return date.fromisoformat(head).isoformat()


def local_midnight(day: DayLike, tz: tzinfo) -> datetime:
    return datetime.combine(parse_day(day), time.min, tzinfo=tz)


def days_between(a: DayLike, b: DayLike) -> int:
    """Night count from a to b. Zero or negative means an invalid stay."""
    return (parse_day(b) - parse_day(a)).days


def shift_day(day: DayLike, days: int) -> DayKey:
    return format_day(parse_day(day) + timedelta(days=days))


def weekday(day: DayLike) -> int:
    """Monday=0 ... Sunday=6"""
    return parse_day(day).weekday()


class DayRange:
    """
    Half-open run of calendar days [start, end).

    Iteration is lazy and can be repeated; an inverted range is empty.
    """

    __slots__ = ("start", "end")

    def __init__(self, start: DayLike, end_exclusive: DayLike):
        self.start = parse_day(start)
        self.end = parse_day(end_exclusive)

    def __iter__(self) -> Iterator[DayKey]:
        current = self.start
        one_day = timedelta(days=1)
        while current < self.end:
            yield current.isoformat()
            current += one_day

    def __len__(self) -> int:
        return max(0, (self.end - self.start).days)

    def __contains__(self, day: object) -> bool:
        try:
            d = parse_day(day)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return False
        return self.start <= d < self.end

    def __repr__(self) -> str:
        return f"DayRange({self.start.isoformat()!r}, {self.end.isoformat()!r})"


def enumerate_days(start: DayLike, end_exclusive: DayLike) -> DayRange:
    return DayRange(start, end_exclusive)
