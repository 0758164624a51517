"""
Reservation Store

Append-only collection of confirmed reservations, projected into calendar
events so they can be merged with the remote feed. The in-memory
implementation lives for the process lifetime only; BookingService depends
on the ReservationStore interface so a persistent store can replace it.
"""

import hashlib
import json
import threading
from abc import ABC, abstractmethod
from datetime import tzinfo
from typing import List, Optional

from ..models.calendar_event import CalendarEvent
from ..models.reservation import Reservation
from .date_range import local_midnight


def reservation_uid(reservation: Reservation) -> str:
    """order_id if present, else a short hash of the reservation's content."""
    if reservation.order_id:
        return reservation.order_id
    canonical = json.dumps(reservation.to_dict(), sort_keys=True, ensure_ascii=False, default=str)
    return "res-" + hashlib.sha1(canonical.encode("utf-8")).hexdigest()[:8]


def reservation_to_event(reservation: Reservation, tz: tzinfo) -> CalendarEvent:
    return CalendarEvent(
        uid=reservation_uid(reservation),
        summary=f"Réservation (payé) - {reservation.guest_name} {reservation.guest_surname}".rstrip(),
        start=local_midnight(reservation.start_day, tz),
        end=local_midnight(reservation.end_day, tz),
        all_day=True,
        origin="reservation",
    )


class ReservationStore(ABC):

    @abstractmethod
    def append(self, reservation: Reservation) -> None:
        """Record a reservation. No uniqueness check at this layer."""

    @abstractmethod
    def all(self) -> List[Reservation]:
        """All reservations in insertion order."""

    def find_by_order_id(self, order_id: str) -> Optional[Reservation]:
        for reservation in self.all():
            if reservation.order_id == order_id:
                return reservation
        return None

    def as_events(self, tz: tzinfo) -> List[CalendarEvent]:
        return [reservation_to_event(r, tz) for r in self.all()]

    def __len__(self) -> int:
        return len(self.all())


class InMemoryReservationStore(ReservationStore):

    def __init__(self):
        self._reservations: List[Reservation] = []
        self._lock = threading.Lock()

    def append(self, reservation: Reservation) -> None:
        with self._lock:
            self._reservations.append(reservation)

    def all(self) -> List[Reservation]:
        with self._lock:
            return list(self._reservations)
