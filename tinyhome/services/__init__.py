# Services package
from .date_range import DayRange, day_key, days_between, enumerate_days
from .pricing_engine import PricingEngine, SpecialPriceRule, StayPrice, get_pricing_engine, parse_special_prices
from .availability_index import AvailabilityIndex
from .calendar_source import CalendarSource, IcsCalendarSource, parse_ics
from .calendar_cache import CalendarCache
from .reservation_store import ReservationStore, InMemoryReservationStore
from .payment_verifier import PaymentVerifier, PayPalVerifier, PaymentOrder
from .notifier import Notifier, SendGridNotifier, DisabledNotifier, build_notifier
from .booking_service import BookingService, BookingOutcome, BookingState, AvailabilityView, PropertyProfile

__all__ = [
    "DayRange", "day_key", "days_between", "enumerate_days",
    "PricingEngine", "SpecialPriceRule", "StayPrice", "get_pricing_engine", "parse_special_prices",
    "AvailabilityIndex",
    "CalendarSource", "IcsCalendarSource", "parse_ics",
    "CalendarCache",
    "ReservationStore", "InMemoryReservationStore",
    "PaymentVerifier", "PayPalVerifier", "PaymentOrder",
    "Notifier", "SendGridNotifier", "DisabledNotifier", "build_notifier",
    "BookingService", "BookingOutcome", "BookingState", "AvailabilityView", "PropertyProfile",
]
