"""
Tests for settings parsing and default service wiring
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from tinyhome.config import Settings
from tinyhome.dependencies import get_booking_service
from tinyhome.services.calendar_source import IcsCalendarSource
from tinyhome.services.notifier import DisabledNotifier
from tinyhome.services.payment_verifier import PayPalVerifier
from tinyhome.services.reservation_store import InMemoryReservationStore


def make_settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


class TestSettings:

    def test_defaults(self):
        settings = make_settings()

        assert settings.tz.key == "Europe/Paris"
        assert settings.default_nightly_price == Decimal("149")
        assert [r.start for r in settings.special_price_rules] == [(12, 24), (2, 14), (2, 13), (12, 31)]

    def test_unknown_timezone_rejected(self):
        with pytest.raises(PydanticValidationError):
            make_settings(PROPERTY_TIMEZONE="Mars/Olympus")

    def test_cors_origins_are_deduplicated(self):
        settings = make_settings(ALLOWED_ORIGINS="https://tinyhome.fr/, https://tinyhome.fr,,http://localhost:5173")
        assert settings.cors_origins == ["https://tinyhome.fr", "http://localhost:5173"]

    def test_sandbox_outside_production(self):
        settings = make_settings(
            ENVIRONMENT="development",
            PAYPAL_CLIENT_ID_SANDBOX="sb-id",
            PAYPAL_CLIENT_SECRET_SANDBOX="sb-secret",
            PAYPAL_CLIENT_ID_LIVE="live-id",
            PAYPAL_CLIENT_SECRET_LIVE="live-secret",
        )

        assert not settings.paypal_is_live
        assert settings.paypal_api_base == "https://api-m.sandbox.paypal.com"
        assert settings.paypal_client_id == "sb-id"

    def test_live_in_production_with_live_keys(self):
        settings = make_settings(
            ENVIRONMENT="production",
            PAYPAL_CLIENT_ID_LIVE="live-id",
            PAYPAL_CLIENT_SECRET_LIVE="live-secret",
        )

        assert settings.paypal_is_live
        assert settings.paypal_api_base == "https://api-m.paypal.com"
        assert settings.paypal_client_secret == "live-secret"

    def test_production_without_live_keys_stays_on_sandbox(self):
        settings = make_settings(ENVIRONMENT="production", PAYPAL_CLIENT_ID_LIVE="live-id")
        assert not settings.paypal_is_live


class TestDefaultWiring:

    def test_service_built_from_settings(self):
        service = get_booking_service.__wrapped__()

        assert isinstance(service.source, IcsCalendarSource)
        assert service.source.url == "https://calendar.example.test/feed.ics"
        assert isinstance(service.verifier, PayPalVerifier)
        assert isinstance(service.notifier, DisabledNotifier)
        assert isinstance(service.store, InMemoryReservationStore)
        assert service.horizon_days == 730
