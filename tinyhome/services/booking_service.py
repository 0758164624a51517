"""
Booking Service

Orchestrates availability reads and booking completion:

    Requested -> PaymentVerifying -> PaymentRejected
                                  -> Persisted -> NotifyAttempted -> Done

Nothing is rolled back once Persisted is reached: an email failure never
undoes a paid reservation, and the caller is told the booking succeeded.

Known limitation: the conflict check and the append are not atomic. Two
attempts for overlapping dates that are both inside payment verification
at the same time will both be persisted.
"""

import re
import time
from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..exceptions import ConflictError, NotifyError, PaymentNotCompleted, ValidationError
from ..models.calendar_event import CalendarEvent
from ..models.reservation import PaymentStatus, Reservation
from ..schemas.booking import BookingCompleteRequest
from ..utils.clock import Clock, utc_now
from ..utils.logging_config import booking_context, get_logger
from ..utils.metrics import record_notification, record_reservation
from .availability_index import AvailabilityIndex
from .calendar_cache import CalendarCache
from .calendar_source import CalendarSource
from .date_range import (
    days_between, format_day, local_day_from_instant, parse_day,
    utc_day_from_instant, weekday,
)
from .notifier import Notifier, render_template
from .payment_verifier import PaymentVerifier
from .pricing_engine import PricingEngine
from .reservation_store import ReservationStore

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SUNDAY = 6
SUNDAY_MIN_NIGHTS = 2


class BookingState(str, Enum):
    REQUESTED = "requested"
    PAYMENT_VERIFYING = "payment_verifying"
    PAYMENT_REJECTED = "payment_rejected"
    PERSISTED = "persisted"
    NOTIFY_ATTEMPTED = "notify_attempted"
    DONE = "done"


@dataclass
class BookingOutcome:
    state: BookingState
    success: bool
    message: str
    reservation: Optional[Reservation] = None
    notifications: Dict[str, bool] = field(default_factory=dict)
    duplicate: bool = False


@dataclass
class AvailabilityView:
    source: str  # "cache" | "remote"
    events: List[CalendarEvent]


@dataclass
class PropertyProfile:
    """Values substituted into the confirmation emails"""
    name: str = "The Tiny Home"
    address: str = ""
    key_handover_phone: str = ""
    owner_email: str = ""
    currency: str = "EUR"


def format_fr(day: str) -> str:
    """YYYY-MM-DD -> DD/MM/YYYY"""
    y, m, d = day.split("-")
    return f"{d}/{m}/{y}"


class BookingService:

    def __init__(
        self,
        cache: CalendarCache,
        source: CalendarSource,
        store: ReservationStore,
        verifier: PaymentVerifier,
        notifier: Notifier,
        pricing: PricingEngine,
        tz: tzinfo,
        profile: Optional[PropertyProfile] = None,
        horizon_days: int = 730,
        clock: Clock = utc_now
    ):
        self.cache = cache
        self.source = source
        self.store = store
        self.verifier = verifier
        self.notifier = notifier
        self.pricing = pricing
        self.tz = tz
        self.profile = profile or PropertyProfile()
        self.horizon_days = horizon_days
        self.clock = clock

    # ================================
    # AVAILABILITY
    # ================================

    def today(self) -> date:
        return self.clock().astimezone(self.tz).date()

    def horizon(self) -> date:
        return self.today() + timedelta(days=self.horizon_days)

    def get_availability(self) -> AvailabilityView:
        """Feed events (cached) merged with local reservations, sorted by start."""
        feed_events, origin = self.cache.lookup(self.clock(), self.source)
        merged = feed_events + self.store.as_events(self.tz)
        merged.sort(key=lambda e: e.start)
        return AvailabilityView(source=origin, events=merged)

    def availability_index(self, clamp: bool = True) -> AvailabilityIndex:
        """Booked nights; with clamp=False runs past the horizon are kept whole."""
        view = self.get_availability()
        return AvailabilityIndex.build(view.events, self.tz, horizon=self.horizon() if clamp else None)

    # ================================
    # BOOKING COMPLETION
    # ================================

    def _transition(self, order_reference: str, old: Optional[BookingState], new: BookingState):
        logger.booking_state_changed(order_reference, old.value if old else None, new.value)

    def resolve_range(self, raw_range: Optional[List[str]]) -> Tuple[str, str]:
        """
        Convert the client's [startInstant, endInstant] into calendar days.

        The arrival day uses the local calendar projection and the departure
        day uses the UTC date substring. Keep both: making them symmetric
        brings back an off-by-one on the arrival day for guests east of UTC.
        """
        if not raw_range or len(raw_range) != 2 or not all(raw_range):
            raise ValidationError("A date range [start, end] is required")
        start_raw, end_raw = raw_range
        try:
            start_day = local_day_from_instant(start_raw, self.tz)
            end_day = utc_day_from_instant(end_raw)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Malformed date range: {e}") from e
        return start_day, end_day

    def validate_request(self, request: BookingCompleteRequest) -> Tuple[str, str, int]:
        """
        Check the request is bookable in principle (independent of the calendar).

        Returns: (start_day, end_day, nights)
        """
        if not request.order_reference:
            raise ValidationError("orderReference is required")

        email = request.guest_info.email
        if email and not EMAIL_RE.match(email):
            raise ValidationError("Invalid guest email address")

        start_day, end_day = self.resolve_range(request.date_range)
        nights = days_between(start_day, end_day)
        if nights < 1:
            raise ValidationError("Please select a valid date range (at least 1 night)")

        today = self.today()
        if parse_day(start_day) < today:
            raise ValidationError(f"Arrival day {start_day} is in the past")
        if parse_day(end_day) > self.horizon():
            raise ValidationError(
                f"Bookings open at most {self.horizon_days} days ahead (until {format_day(self.horizon())})"
            )

        if weekday(start_day) == SUNDAY and nights < SUNDAY_MIN_NIGHTS:
            raise ValidationError("For a Sunday arrival, the stay must be at least 2 nights")

        return start_day, end_day, nights

    def ensure_range_free(self, start_day: str, end_day: str) -> None:
        index = self.availability_index(clamp=False)
        if not index.is_range_free(start_day, end_day):
            blocked = index.blocked_days_in(start_day, end_day)
            raise ConflictError(
                "The selected range contains unavailable dates. Please choose another range.",
                details={"blocked_days": blocked}
            )

    def complete_booking(self, request: BookingCompleteRequest) -> BookingOutcome:
        """
        Verify payment, persist and notify.

        Raises:
            ValidationError: malformed request, past or invalid range, minimum stay
            ConflictError: range overlaps booked days (raised before PayPal is called)
            UpstreamFetchError: calendar feed unavailable, so conflicts cannot be checked
            PaymentVerifierError: PayPal unreachable / malformed
            PaymentNotCompleted: order status is not COMPLETED
        """
        with booking_context(request.order_reference):
            return self._complete(request)

    def _complete(self, request: BookingCompleteRequest) -> BookingOutcome:
        started = time.perf_counter()
        reference = request.order_reference
        self._transition(reference, None, BookingState.REQUESTED)

        existing = self.store.find_by_order_id(reference) if reference else None
        if existing is not None:
            logger.warning(f"Order {reference} already recorded, ignoring duplicate submission")
            return BookingOutcome(
                state=BookingState.DONE,
                success=True,
                message="Reservation already recorded",
                reservation=existing,
                duplicate=True,
            )

        start_day, end_day, nights = self.validate_request(request)
        if request.nights is not None and request.nights != nights:
            logger.warning(f"Order {reference}: client sent {request.nights} night(s), range gives {nights}")

        self.ensure_range_free(start_day, end_day)

        # ---- PaymentVerifying ----
        self._transition(reference, BookingState.REQUESTED, BookingState.PAYMENT_VERIFYING)
        order = self.verifier.get_order(reference)
        if not order.is_completed:
            self._transition(reference, BookingState.PAYMENT_VERIFYING, BookingState.PAYMENT_REJECTED)
            logger.warning(f"Payment not completed for order {reference}, status: {order.status}")
            raise PaymentNotCompleted(
                "Payment not completed",
                details={"status": order.status}
            )

        # ---- Persisted ----
        quote = self.pricing.compute_stay(start_day, end_day)
        final_price = request.final_price if request.final_price is not None else quote.final_price
        if final_price != quote.final_price:
            logger.warning(
                f"Order {reference}: declared price {final_price} differs from quote {quote.final_price}"
            )
        if order.amount is not None and order.amount != final_price:
            logger.warning(
                f"Order {reference}: PayPal amount {order.amount} {order.currency or ''} "
                f"differs from declared price {final_price}"
            )

        guest = request.guest_info
        created_at = self.clock()
        reservation = Reservation(
            order_id=reference,
            guest_name=guest.name,
            guest_surname=guest.surname,
            phone=guest.phone,
            email=guest.email,
            start_day=start_day,
            end_day=end_day,
            nights=nights,
            final_price=Decimal(final_price),
            payment_status=PaymentStatus.from_processor(order.status),
            payer=order.payer or {},
            created_at=created_at,
        )
        self.store.append(reservation)
        self.cache.invalidate()
        self._transition(reference, BookingState.PAYMENT_VERIFYING, BookingState.PERSISTED)
        record_reservation(reservation.final_price)
        logger.reservation_persisted(
            reference, reservation.full_name, start_day, end_day, str(reservation.final_price),
            duration_ms=round((time.perf_counter() - started) * 1000, 1)
        )

        # ---- NotifyAttempted ----
        notifications = self.notify(reservation)
        self._transition(reference, BookingState.PERSISTED, BookingState.NOTIFY_ATTEMPTED)

        if not self.notifier.enabled:
            message = "Reservation saved (emails not sent: mail delivery is not configured)."
        elif all(notifications.values()):
            message = "Reservation saved and emails sent"
        else:
            message = "Reservation saved (error while sending emails)."

        self._transition(reference, BookingState.NOTIFY_ATTEMPTED, BookingState.DONE)
        return BookingOutcome(
            state=BookingState.DONE,
            success=True,
            message=message,
            reservation=reservation,
            notifications=notifications,
        )

    # ================================
    # NOTIFICATIONS
    # ================================

    def _email_context(self, reservation: Reservation) -> dict:
        return {
            "reservation": reservation,
            "arrival": format_fr(reservation.start_day),
            "departure": format_fr(reservation.end_day),
            "currency": self.profile.currency,
            "property_name": self.profile.name,
            "property_address": self.profile.address,
            "key_handover_phone": self.profile.key_handover_phone,
            "contact_email": self.profile.owner_email,
        }

    def build_messages(self, reservation: Reservation) -> Dict[str, Tuple[str, str, str]]:
        """kind -> (to, subject, body)"""
        context = self._email_context(reservation)
        return {
            "owner": (
                self.profile.owner_email,
                f"Nouvelle réservation - {reservation.full_name}",
                render_template("owner_notification.txt", **context),
            ),
            "guest": (
                reservation.email,
                f"Confirmation de votre réservation - {self.profile.name}",
                render_template("guest_confirmation.txt", **context),
            ),
        }

    def notify(self, reservation: Reservation) -> Dict[str, bool]:
        """Send owner and guest emails independently. Never raises."""
        if not self.notifier.enabled:
            logger.warning(f"Mail delivery not configured, no emails for order {reservation.order_id}")
            return {}

        results = {}
        for kind, (to, subject, body) in self.build_messages(reservation).items():
            try:
                self.notifier.send(to, subject, body)
                results[kind] = True
                logger.info(f"{kind.capitalize()} email sent to {to} for order {reservation.order_id}")
            except NotifyError as e:
                results[kind] = False
                logger.error(f"{kind.capitalize()} email for order {reservation.order_id} failed: {e}")
            record_notification(kind, results[kind])
        return results
