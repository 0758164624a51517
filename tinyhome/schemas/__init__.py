from .availability import AvailabilityResponse, AvailabilityDaysResponse, CalendarEventOut
from .booking import (
    GuestInfo, BookingCompleteRequest, BookingCompleteResponse,
    LegacyPaypalCompleteRequest, LegacyReservationData,
)
from .pricing import StayQuoteResponse, NightlyPrice

__all__ = [
    "AvailabilityResponse", "AvailabilityDaysResponse", "CalendarEventOut",
    "GuestInfo", "BookingCompleteRequest", "BookingCompleteResponse",
    "LegacyPaypalCompleteRequest", "LegacyReservationData",
    "StayQuoteResponse", "NightlyPrice",
]
