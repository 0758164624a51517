from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class CalendarEvent:
    """
    A blocked period, either from the remote iCal feed or projected from a
    local reservation. Timestamps are timezone-aware.
    """
    uid: Optional[str]
    summary: Optional[str]
    start: datetime
    end: datetime
    all_day: bool = False
    origin: str = "feed"  # feed | reservation

    @property
    def is_valid(self) -> bool:
        return self.start <= self.end
