# Domain models (in-memory only, no persistence layer)
from .calendar_event import CalendarEvent
from .reservation import Reservation, PaymentStatus

__all__ = ["CalendarEvent", "Reservation", "PaymentStatus"]
