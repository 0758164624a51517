"""
Process-wide service wiring.

Reservations live in memory for the process lifetime, so the store, the
calendar cache and the service holding them are built once and shared by
every request. Tests replace get_booking_service via
app.dependency_overrides.
"""

from datetime import timedelta
from functools import lru_cache

from .config import get_settings
from .services.booking_service import BookingService, PropertyProfile
from .services.calendar_cache import CalendarCache
from .services.calendar_source import IcsCalendarSource
from .services.notifier import build_notifier
from .services.payment_verifier import PayPalVerifier
from .services.pricing_engine import get_pricing_engine
from .services.reservation_store import InMemoryReservationStore


@lru_cache()
def get_booking_service() -> BookingService:
    settings = get_settings()
    tz = settings.tz
    return BookingService(
        cache=CalendarCache(ttl=timedelta(seconds=settings.calendar_cache_ttl_seconds)),
        source=IcsCalendarSource(
            settings.ical_url,
            tz,
            timeout=settings.calendar_fetch_timeout_seconds,
        ),
        store=InMemoryReservationStore(),
        verifier=PayPalVerifier(
            settings.paypal_client_id,
            settings.paypal_client_secret,
            base_url=settings.paypal_api_base,
            token_timeout=settings.paypal_token_timeout_seconds,
            order_timeout=settings.paypal_order_timeout_seconds,
        ),
        notifier=build_notifier(
            settings.sendgrid_api_key,
            settings.email_from,
            timeout=settings.sendgrid_timeout_seconds,
        ),
        pricing=get_pricing_engine(),
        tz=tz,
        profile=PropertyProfile(
            name=settings.property_name,
            address=settings.property_address,
            key_handover_phone=settings.key_handover_phone,
            owner_email=settings.owner_email,
            currency=settings.currency,
        ),
        horizon_days=settings.booking_horizon_days,
    )
