from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional


class PaymentStatus(str, Enum):
    COMPLETED = "COMPLETED"
    OTHER = "OTHER"

    @classmethod
    def from_processor(cls, status: Optional[str]) -> "PaymentStatus":
        return cls.COMPLETED if (status or "").upper() == "COMPLETED" else cls.OTHER


@dataclass(frozen=True)
class Reservation:
    """
    A paid stay. Created once at payment completion, never mutated.

    start_day / end_day are calendar-day keys (YYYY-MM-DD), not instants;
    end_day is the departure day and is not a booked night.
    """
    order_id: str
    guest_name: str
    guest_surname: str
    phone: str
    email: str
    start_day: str
    end_day: str
    nights: int
    final_price: Decimal
    payment_status: PaymentStatus
    created_at: datetime
    payer: Dict[str, Any] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.guest_name} {self.guest_surname}".strip()

    def to_dict(self) -> Dict[str, Any]:
        """Stable, JSON-friendly representation (also used for content hashing)"""
        return {
            "order_id": self.order_id,
            "guest_name": self.guest_name,
            "guest_surname": self.guest_surname,
            "phone": self.phone,
            "email": self.email,
            "start_day": self.start_day,
            "end_day": self.end_day,
            "nights": self.nights,
            "final_price": str(self.final_price),
            "payment_status": self.payment_status.value,
            "payer": self.payer,
            "created_at": self.created_at.isoformat(),
        }
