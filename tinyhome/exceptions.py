"""
Booking error taxonomy.

Every error carries a stable `code` and the HTTP status the API maps it to.
Services raise these; the handlers in main.py turn them into
{"success": false, "message": ..., "code": ...} responses.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "booking_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(BookingError):
    """Bad or missing request fields, invalid range, minimum-stay violation."""

    code = "validation_error"
    status_code = 400


class ConflictError(BookingError):
    """Requested range overlaps already-booked days."""

    code = "conflict"
    status_code = 409


class UpstreamFetchError(BookingError):
    """Calendar feed unavailable or unparseable. Never served from stale data."""

    code = "calendar_unavailable"
    status_code = 500


class PaymentNotCompleted(BookingError):
    """Processor reports the order as anything other than COMPLETED."""

    code = "payment_not_completed"
    status_code = 400


class PaymentVerifierError(BookingError):
    """Network, timeout or malformed response from the payment processor.

    Safe to retry with the same order reference.
    """

    code = "payment_verifier_error"
    status_code = 500


class NotifyError(Exception):
    """Email delivery failed. Logged only; never changes a booking outcome."""


# Names used by the collaborator contracts
FetchError = UpstreamFetchError
VerifierError = PaymentVerifierError
