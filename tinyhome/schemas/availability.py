from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import date, datetime

from ..models.calendar_event import CalendarEvent


class CalendarEventOut(BaseModel):
    uid: Optional[str] = None
    summary: Optional[str] = None
    start: datetime
    end: datetime
    all_day: bool = Field(False, alias="allDay")

    class Config:
        populate_by_name = True

    @classmethod
    def from_event(cls, event: CalendarEvent) -> "CalendarEventOut":
        return cls(
            uid=event.uid,
            summary=event.summary,
            start=event.start,
            end=event.end,
            all_day=event.all_day,
        )


class AvailabilityResponse(BaseModel):
    source: Literal["cache", "remote"]
    events: List[CalendarEventOut]


class AvailabilityDaysResponse(BaseModel):
    """Per-day view the calendar widget colours from"""
    booked_days: List[str] = Field(..., alias="bookedDays")
    arrival_days: List[str] = Field(..., alias="arrivalDays")
    today: date
    horizon: date

    class Config:
        populate_by_name = True
