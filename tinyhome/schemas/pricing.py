from pydantic import BaseModel, Field
from typing import List
from decimal import Decimal

from ..services.pricing_engine import StayPrice


class NightlyPrice(BaseModel):
    day: str
    price: Decimal


class StayQuoteResponse(BaseModel):
    nights: int
    subtotal: Decimal
    discount_percent: int = Field(..., alias="discountPercent")
    discount_amount: Decimal = Field(..., alias="discountAmount")
    final_price: Decimal = Field(..., alias="finalPrice")
    currency: str = "EUR"
    nightly_prices: List[NightlyPrice] = Field(default_factory=list, alias="nightlyPrices")

    class Config:
        populate_by_name = True

    @classmethod
    def from_stay(cls, stay: StayPrice, currency: str = "EUR") -> "StayQuoteResponse":
        return cls(
            nights=stay.nights,
            subtotal=stay.subtotal,
            discount_percent=stay.discount_percent,
            discount_amount=stay.discount_amount,
            final_price=stay.final_price,
            currency=currency,
            nightly_prices=[NightlyPrice(day=day, price=price) for day, price in stay.breakdown],
        )
