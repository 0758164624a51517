from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from decimal import Decimal
import re

# PayPal order ids are short alphanumeric tokens
ORDER_REFERENCE_PATTERN = r"^[A-Za-z0-9_-]+$"


def _strip_markup(v):
    """Remove script tags and inline event handlers from free-text fields"""
    if isinstance(v, str):
        v = re.sub(r'<script[^>]*>.*?</script>', '', v, flags=re.IGNORECASE | re.DOTALL)
        v = re.sub(r'on\w+\s*=', '', v, flags=re.IGNORECASE)
        return v.strip()
    return v


class GuestInfo(BaseModel):
    name: str = Field("", max_length=100, description="Prénom")
    surname: str = Field("", max_length=100, description="Nom")
    phone: str = Field("", max_length=30)
    email: str = Field("", max_length=254)

    @field_validator('name', 'surname', 'phone', 'email', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        if v is None:
            return ""
        return _strip_markup(v)


class BookingCompleteRequest(BaseModel):
    """
    Sent by the front-end once PayPal reports the order approved.

    `range` carries the raw instants chosen in the calendar widget; they are
    converted to calendar days server-side.
    """
    order_reference: str = Field(..., alias="orderReference", min_length=1, max_length=64,
                                 pattern=ORDER_REFERENCE_PATTERN)
    guest_info: GuestInfo = Field(default_factory=GuestInfo, alias="guestInfo")
    date_range: Optional[List[str]] = Field(None, alias="range")
    nights: Optional[int] = Field(None, ge=0)
    final_price: Optional[Decimal] = Field(None, alias="finalPrice", ge=0)

    @field_validator('order_reference', mode='before')
    @classmethod
    def strip_reference(cls, v):
        return v.strip() if isinstance(v, str) else v

    class Config:
        populate_by_name = True


class LegacyReservationData(BaseModel):
    nom: str = ""
    prenom: str = ""
    tel: str = ""
    email: str = ""
    range: Optional[List[str]] = None
    nights: Optional[int] = None
    finalPrice: Optional[Decimal] = None


class LegacyPaypalCompleteRequest(BaseModel):
    """Payload of the first front-end release (/api/paypal/complete)"""
    order_id: str = Field(..., alias="orderId", min_length=1, max_length=64, pattern=ORDER_REFERENCE_PATTERN)
    reservation_data: LegacyReservationData = Field(..., alias="reservationData")

    class Config:
        populate_by_name = True

    def to_booking_request(self) -> BookingCompleteRequest:
        data = self.reservation_data
        return BookingCompleteRequest(
            order_reference=self.order_id,
            guest_info=GuestInfo(name=data.prenom, surname=data.nom, phone=data.tel, email=data.email),
            date_range=data.range,
            nights=data.nights,
            final_price=data.finalPrice,
        )


class BookingCompleteResponse(BaseModel):
    success: bool
    message: str
