"""
Shared fixtures: in-process fakes for the feed, PayPal and email, a frozen
clock, and a BookingService wired from them.
"""

import os

# Must be set before tinyhome.config is imported
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("ICAL_URL", "https://calendar.example.test/feed.ics")
os.environ.setdefault("SENDGRID_API_KEY", "")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional
from zoneinfo import ZoneInfo

import pytest

from tinyhome.exceptions import NotifyError
from tinyhome.models.calendar_event import CalendarEvent
from tinyhome.services.booking_service import BookingService, PropertyProfile
from tinyhome.services.calendar_cache import CalendarCache
from tinyhome.services.calendar_source import CalendarSource
from tinyhome.services.date_range import local_midnight
from tinyhome.services.notifier import Notifier
from tinyhome.services.payment_verifier import PaymentOrder, PaymentVerifier
from tinyhome.services.pricing_engine import PricingEngine, parse_special_prices
from tinyhome.services.reservation_store import InMemoryReservationStore

PARIS = ZoneInfo("Europe/Paris")

DEFAULT_RULES = "12-24:12-26:200,02-14:02-14:250,02-13:02-13:250,12-31:01-01:250"

OWNER_EMAIL = "owner@tinyhome.test"


# ================================
# FAKES
# ================================

class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeSource(CalendarSource):
    """Counts fetches; raises `error` instead of returning when set."""

    def __init__(self, events: Optional[List[CalendarEvent]] = None, error: Optional[Exception] = None):
        self.events = list(events or [])
        self.error = error
        self.calls = 0

    def fetch(self) -> List[CalendarEvent]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.events)


class FakeVerifier(PaymentVerifier):

    def __init__(self, status: str = "COMPLETED", amount: Optional[Decimal] = None, error: Optional[Exception] = None):
        self.status = status
        self.amount = amount
        self.error = error
        self.calls = []

    def get_order(self, order_reference: str) -> PaymentOrder:
        self.calls.append(order_reference)
        if self.error is not None:
            raise self.error
        return PaymentOrder(
            order_id=order_reference,
            status=self.status,
            payer={"email_address": "payer@example.com"},
            amount=self.amount,
            currency="EUR",
        )


class FakeNotifier(Notifier):
    """Records sent messages; recipients in `fail_for` raise NotifyError."""

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent = []
        self.attempts = []

    def send(self, to: str, subject: str, body: str) -> None:
        self.attempts.append(to)
        if to in self.fail_for:
            raise NotifyError(f"refused {to}")
        self.sent.append((to, subject, body))


# ================================
# HELPERS
# ================================

def make_event(start_day: str, end_day: str, uid: str = None, tz=PARIS) -> CalendarEvent:
    """All-day feed event covering nights [start_day, end_day)"""
    return CalendarEvent(
        uid=uid or f"feed-{start_day}",
        summary="Reserved",
        start=local_midnight(start_day, tz),
        end=local_midnight(end_day, tz),
        all_day=True,
    )


def iso_z(instant: datetime) -> str:
    """Format like a browser's Date.toISOString()"""
    utc = instant.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def instant_range(start_day: str, end_day: str, tz=PARIS) -> List[str]:
    """[start-of-arrival-day, end-of-departure-day] as the calendar widget sends them"""
    start = local_midnight(start_day, tz)
    end = local_midnight(end_day, tz) + timedelta(days=1) - timedelta(milliseconds=1)
    return [iso_z(start), iso_z(end)]


def booking_payload(
    start_day: str,
    end_day: str,
    order_reference: str = "ORDER-1",
    final_price=None,
    nights: int = None,
    email: str = "guest@example.com",
) -> dict:
    payload = {
        "orderReference": order_reference,
        "guestInfo": {
            "name": "Camille",
            "surname": "Martin",
            "phone": "+33 6 12 34 56 78",
            "email": email,
        },
        "range": instant_range(start_day, end_day),
    }
    if final_price is not None:
        payload["finalPrice"] = str(final_price)
    if nights is not None:
        payload["nights"] = nights
    return payload


# ================================
# FIXTURES
# ================================

@pytest.fixture
def clock():
    # Monday 2 June 2025, 10:00 in Paris
    return FakeClock(datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def store():
    return InMemoryReservationStore()


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def pricing():
    return PricingEngine(Decimal("149"), parse_special_prices(DEFAULT_RULES))


@pytest.fixture
def cache():
    return CalendarCache(ttl=timedelta(minutes=15))


@pytest.fixture
def service(cache, source, store, verifier, notifier, pricing, clock):
    return BookingService(
        cache=cache,
        source=source,
        store=store,
        verifier=verifier,
        notifier=notifier,
        pricing=pricing,
        tz=PARIS,
        profile=PropertyProfile(
            name="The Tiny Home",
            address="1 rue du Lac 73000 Chambéry",
            key_handover_phone="+33 6 00 00 00 00",
            owner_email=OWNER_EMAIL,
        ),
        horizon_days=730,
        clock=clock,
    )
