"""
Tests for BookingService: availability merge, validation, the completion
state machine and notifications.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from tinyhome.exceptions import (
    ConflictError, FetchError, PaymentNotCompleted, ValidationError, VerifierError,
)
from tinyhome.models.reservation import PaymentStatus
from tinyhome.schemas.booking import BookingCompleteRequest
from tinyhome.services.booking_service import BookingState, format_fr
from tinyhome.services.notifier import DisabledNotifier

from conftest import OWNER_EMAIL, booking_payload, make_event


def request_for(start_day, end_day, **kwargs) -> BookingCompleteRequest:
    return BookingCompleteRequest.model_validate(booking_payload(start_day, end_day, **kwargs))


class TestAvailability:

    def test_merges_feed_and_reservations_sorted(self, service, source):
        source.events = [make_event("2025-07-01", "2025-07-03", uid="airbnb-1")]
        service.complete_booking(request_for("2025-06-10", "2025-06-12"))

        view = service.get_availability()

        assert [e.uid for e in view.events] == ["ORDER-1", "airbnb-1"]
        assert [e.origin for e in view.events] == ["reservation", "feed"]

    def test_source_reports_cache_hits(self, service, source, clock):
        assert service.get_availability().source == "remote"
        clock.advance(minutes=5)
        assert service.get_availability().source == "cache"
        assert source.calls == 1

    def test_feed_failure_propagates(self, service, source):
        source.error = FetchError("down")
        with pytest.raises(FetchError):
            service.get_availability()

    def test_index_uses_property_timezone(self, service, source):
        source.events = [make_event("2025-06-10", "2025-06-12")]
        index = service.availability_index()

        assert index.booked_days == {"2025-06-10", "2025-06-11"}
        assert index.arrival_days == {"2025-06-10"}

    def test_today_and_horizon(self, service):
        assert service.today().isoformat() == "2025-06-02"
        assert service.horizon().isoformat() == "2027-06-02"


class TestRangeResolution:

    def test_paris_winter_range(self, service, clock):
        """Midnight local arrival and end-of-day departure map to the chosen days"""
        clock.now = datetime(2025, 12, 1, 9, 0, tzinfo=timezone.utc)
        start, end = service.resolve_range(["2025-12-15T23:00:00.000Z", "2025-12-17T22:59:59.999Z"])

        assert (start, end) == ("2025-12-16", "2025-12-17")

    def test_paris_winter_booking_persists_local_days(self, service, store, clock):
        clock.now = datetime(2025, 12, 1, 9, 0, tzinfo=timezone.utc)
        request = BookingCompleteRequest.model_validate({
            "orderReference": "ORDER-TZ",
            "guestInfo": {"name": "Camille", "surname": "Martin", "email": "guest@example.com"},
            "range": ["2025-12-15T23:00:00.000Z", "2025-12-17T22:59:59.999Z"],
        })
        service.complete_booking(request)

        reservation = store.find_by_order_id("ORDER-TZ")
        assert reservation.start_day == "2025-12-16"
        assert reservation.end_day == "2025-12-17"
        assert reservation.nights == 1

    @pytest.mark.parametrize("raw", [None, [], ["2025-06-10T00:00:00Z"], ["", ""], ["yesterday", "tomorrow"]])
    def test_malformed_range(self, service, raw):
        with pytest.raises(ValidationError):
            service.resolve_range(raw)


class TestValidation:

    def test_zero_nights(self, service):
        with pytest.raises(ValidationError):
            service.validate_request(request_for("2025-06-10", "2025-06-10"))

    def test_inverted_range(self, service):
        with pytest.raises(ValidationError):
            service.validate_request(request_for("2025-06-12", "2025-06-10"))

    def test_past_arrival(self, service):
        with pytest.raises(ValidationError):
            service.validate_request(request_for("2025-06-01", "2025-06-04"))

    def test_arrival_today_is_allowed(self, service):
        assert service.validate_request(request_for("2025-06-02", "2025-06-04")) == ("2025-06-02", "2025-06-04", 2)

    def test_beyond_horizon(self, service):
        with pytest.raises(ValidationError):
            service.validate_request(request_for("2027-07-01", "2027-07-03"))

    def test_departure_on_horizon_accepted(self, service):
        assert service.validate_request(request_for("2027-05-31", "2027-06-02"))[2] == 2

    def test_stay_running_past_horizon_rejected(self, service):
        with pytest.raises(ValidationError):
            service.validate_request(request_for("2027-05-31", "2027-06-03"))

    def test_arrival_on_horizon_rejected(self, service):
        with pytest.raises(ValidationError):
            service.validate_request(request_for("2027-06-02", "2027-06-05"))

    def test_sunday_single_night_rejected(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.validate_request(request_for("2025-06-08", "2025-06-09"))
        assert "Sunday" in exc_info.value.message

    def test_sunday_two_nights_accepted(self, service):
        assert service.validate_request(request_for("2025-06-08", "2025-06-10"))[2] == 2

    def test_saturday_single_night_accepted(self, service):
        assert service.validate_request(request_for("2025-06-07", "2025-06-08"))[2] == 1

    def test_invalid_email(self, service):
        with pytest.raises(ValidationError):
            service.validate_request(request_for("2025-06-10", "2025-06-12", email="not-an-email"))


class TestCompleteBooking:

    def test_happy_path(self, service, store, verifier, notifier):
        outcome = service.complete_booking(request_for("2025-06-10", "2025-06-12", final_price="298.00"))

        assert outcome.success
        assert outcome.state == BookingState.DONE
        assert outcome.message == "Reservation saved and emails sent"
        assert outcome.notifications == {"owner": True, "guest": True}
        assert verifier.calls == ["ORDER-1"]

        reservation = store.find_by_order_id("ORDER-1")
        assert reservation.start_day == "2025-06-10"
        assert reservation.end_day == "2025-06-12"
        assert reservation.nights == 2
        assert reservation.final_price == Decimal("298.00")
        assert reservation.payment_status is PaymentStatus.COMPLETED
        assert reservation.payer == {"email_address": "payer@example.com"}
        assert reservation.full_name == "Camille Martin"

    def test_emails_go_to_owner_then_guest(self, service, notifier):
        service.complete_booking(request_for("2025-06-10", "2025-06-12"))

        owner, guest = notifier.sent
        assert owner[0] == OWNER_EMAIL
        assert "Camille Martin" in owner[1]
        assert "10/06/2025" in owner[2]
        assert guest[0] == "guest@example.com"
        assert "12/06/2025" in guest[2]

    def test_price_defaults_to_quote(self, service, store):
        service.complete_booking(request_for("2025-12-24", "2025-12-27", nights=3))
        assert store.find_by_order_id("ORDER-1").final_price == Decimal("540.00")

    def test_declared_price_is_stored_even_if_it_differs(self, service, store):
        service.complete_booking(request_for("2025-06-10", "2025-06-12", final_price="250"))
        assert store.find_by_order_id("ORDER-1").final_price == Decimal("250")

    def test_nights_are_computed_server_side(self, service, store):
        service.complete_booking(request_for("2025-06-10", "2025-06-12", nights=5))
        assert store.find_by_order_id("ORDER-1").nights == 2

    def test_booked_dates_become_unavailable(self, service):
        assert service.availability_index().is_range_free("2025-06-10", "2025-06-12")
        service.complete_booking(request_for("2025-06-10", "2025-06-12"))
        assert not service.availability_index().is_range_free("2025-06-10", "2025-06-12")

    def test_cache_invalidated_once_per_booking(self, service):
        with patch.object(service.cache, "invalidate", wraps=service.cache.invalidate) as invalidate:
            service.complete_booking(request_for("2025-06-10", "2025-06-12"))
        invalidate.assert_called_once_with()

    def test_write_invalidates_feed_cache(self, service, source):
        service.get_availability()
        service.complete_booking(request_for("2025-06-10", "2025-06-12"))
        calls_after_booking = source.calls

        assert service.get_availability().source == "remote"
        assert source.calls == calls_after_booking + 1


class TestConflicts:

    def test_conflict_with_feed_event_skips_payment(self, service, source, verifier, store):
        source.events = [make_event("2025-06-11", "2025-06-13")]

        with pytest.raises(ConflictError) as exc_info:
            service.complete_booking(request_for("2025-06-10", "2025-06-12"))

        assert exc_info.value.details == {"blocked_days": ["2025-06-11"]}
        assert verifier.calls == []
        assert len(store) == 0

    def test_conflict_with_existing_reservation(self, service, verifier):
        service.complete_booking(request_for("2025-06-10", "2025-06-13", order_reference="FIRST"))

        with pytest.raises(ConflictError):
            service.complete_booking(request_for("2025-06-12", "2025-06-14", order_reference="SECOND"))
        assert verifier.calls == ["FIRST"]

    def test_booking_across_horizon_never_reaches_payment(self, service, source, verifier, store):
        source.events = [make_event("2027-06-01", "2027-06-06")]

        with pytest.raises(ValidationError):
            service.complete_booking(request_for("2027-06-02", "2027-06-05"))
        assert verifier.calls == []
        assert len(store) == 0

    def test_conflict_near_horizon_with_existing_reservation(self, service, store):
        service.complete_booking(request_for("2027-05-31", "2027-06-02", order_reference="FIRST"))

        with pytest.raises(ConflictError):
            service.complete_booking(request_for("2027-06-01", "2027-06-02", order_reference="SECOND"))
        assert len(store) == 1

    def test_conflict_check_sees_nights_past_horizon(self, service, source):
        source.events = [make_event("2027-06-01", "2027-06-06")]

        with pytest.raises(ConflictError) as exc_info:
            service.ensure_range_free("2027-06-03", "2027-06-05")
        assert exc_info.value.details == {"blocked_days": ["2027-06-03", "2027-06-04"]}

    def test_back_to_back_is_not_a_conflict(self, service, source):
        source.events = [make_event("2025-06-08", "2025-06-10")]
        outcome = service.complete_booking(request_for("2025-06-10", "2025-06-12"))
        assert outcome.success

    def test_feed_down_blocks_booking_before_payment(self, service, source, verifier):
        source.error = FetchError("down")
        with pytest.raises(FetchError):
            service.complete_booking(request_for("2025-06-10", "2025-06-12"))
        assert verifier.calls == []


class TestPaymentOutcomes:

    def test_payment_not_completed(self, service, verifier, store, notifier):
        verifier.status = "APPROVED"

        with pytest.raises(PaymentNotCompleted) as exc_info:
            service.complete_booking(request_for("2025-06-10", "2025-06-12"))

        assert exc_info.value.details == {"status": "APPROVED"}
        assert len(store) == 0
        assert notifier.attempts == []

    def test_verifier_error_persists_nothing(self, service, verifier, store):
        verifier.error = VerifierError("PayPal down")

        with pytest.raises(VerifierError):
            service.complete_booking(request_for("2025-06-10", "2025-06-12"))
        assert len(store) == 0

    def test_retry_after_verifier_error_succeeds(self, service, verifier, store):
        verifier.error = VerifierError("PayPal down")
        with pytest.raises(VerifierError):
            service.complete_booking(request_for("2025-06-10", "2025-06-12"))

        verifier.error = None
        assert service.complete_booking(request_for("2025-06-10", "2025-06-12")).success
        assert len(store) == 1

    def test_duplicate_order_is_recorded_once(self, service, verifier, store, notifier):
        service.complete_booking(request_for("2025-06-10", "2025-06-12"))
        outcome = service.complete_booking(request_for("2025-06-10", "2025-06-12"))

        assert outcome.success
        assert outcome.duplicate
        assert outcome.message == "Reservation already recorded"
        assert len(store) == 1
        assert verifier.calls == ["ORDER-1"]
        assert len(notifier.sent) == 2


class TestNotifications:

    def test_email_failure_still_succeeds(self, service, store, notifier):
        notifier.fail_for = {OWNER_EMAIL, "guest@example.com"}

        outcome = service.complete_booking(request_for("2025-06-10", "2025-06-12"))

        assert outcome.success
        assert outcome.message == "Reservation saved (error while sending emails)."
        assert outcome.notifications == {"owner": False, "guest": False}
        assert len(store) == 1

    def test_owner_failure_does_not_stop_guest_email(self, service, notifier):
        notifier.fail_for = {OWNER_EMAIL}

        outcome = service.complete_booking(request_for("2025-06-10", "2025-06-12"))

        assert notifier.attempts == [OWNER_EMAIL, "guest@example.com"]
        assert outcome.notifications == {"owner": False, "guest": True}

    def test_missing_guest_email_is_accepted(self, service, notifier):
        outcome = service.complete_booking(request_for("2025-06-10", "2025-06-12", email=""))

        assert outcome.success
        assert outcome.notifications["owner"] is True

    def test_disabled_notifier(self, service, store):
        service.notifier = DisabledNotifier()

        outcome = service.complete_booking(request_for("2025-06-10", "2025-06-12"))

        assert outcome.success
        assert outcome.notifications == {}
        assert "not configured" in outcome.message
        assert len(store) == 1


def test_format_fr():
    assert format_fr("2025-12-24") == "24/12/2025"
