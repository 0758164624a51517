"""
Pricing Engine Service

Computes nightly prices for the property based on:
- Default nightly price
- Seasonal special-price windows (month/day, recurring every year)
- Stay-length discount tiers (3+ nights: 10%, 7+ nights: 15%)

Pricing Formula:
1. night_price = first matching special rule's price, else default price
2. subtotal = sum(night_price for each night in [check_in, check_out))
3. discount_amount = round(subtotal * discount_percent / 100, 2)
4. final_price = round(subtotal - discount_amount, 2)
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple

from .date_range import DayKey, DayLike, days_between, enumerate_days, parse_day

CENT = Decimal("0.01")

# (min_nights, percent), checked from the longest stay down
DISCOUNT_TIERS: Tuple[Tuple[int, int], ...] = (
    (7, 15),
    (3, 10),
)

MonthDay = Tuple[int, int]


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class SpecialPriceRule:
    """Price override for a month/day window, inclusive on both ends."""
    start: MonthDay
    end: MonthDay
    price: Decimal
    label: Optional[str] = None

    def matches(self, day: DayLike) -> bool:
        d = parse_day(day)
        md = (d.month, d.day)
        if self.start[0] == self.end[0] or self.start <= self.end:
            return self.start <= md <= self.end
        # Wraps the new year, e.g. Dec 31 - Jan 1
        return md >= self.start or md <= self.end


def parse_special_prices(raw: str) -> List[SpecialPriceRule]:
    """
    Parse "MM-DD:MM-DD:price,..." into rules, keeping declaration order.

    Raises ValueError on a malformed entry.
    """
    rules = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            start_raw, end_raw, price_raw = chunk.split(":")
            sm, sd = (int(p) for p in start_raw.split("-"))
            em, ed = (int(p) for p in end_raw.split("-"))
            price = Decimal(price_raw)
        except (ValueError, ArithmeticError) as e:
            raise ValueError(f"Invalid special price entry {chunk!r}: {e}") from e
        for m, d in ((sm, sd), (em, ed)):
            if not (1 <= m <= 12 and 1 <= d <= 31):
                raise ValueError(f"Invalid month/day in special price entry {chunk!r}")
        rules.append(SpecialPriceRule(start=(sm, sd), end=(em, ed), price=price))
    return rules


@dataclass
class StayPrice:
    """Price breakdown for a stay"""
    nights: int
    subtotal: Decimal
    discount_percent: int
    discount_amount: Decimal
    final_price: Decimal
    breakdown: List[Tuple[DayKey, Decimal]] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "StayPrice":
        zero = Decimal("0.00")
        return cls(nights=0, subtotal=zero, discount_percent=0, discount_amount=zero, final_price=zero)


class PricingEngine:
    """
    Nightly price computation with seasonal overrides and stay-length discounts.

    Rules are evaluated in declaration order and the first match wins, so
    overlapping windows resolve to whichever is listed first.
    """

    def __init__(self, default_price: Decimal, rules: Sequence[SpecialPriceRule] = ()):
        self.default_price = Decimal(str(default_price))
        self.rules = tuple(rules)

    def price_for_night(self, day: DayLike) -> Decimal:
        for rule in self.rules:
            if rule.matches(day):
                return rule.price
        return self.default_price

    @staticmethod
    def discount_percent_for(nights: int) -> int:
        for min_nights, percent in DISCOUNT_TIERS:
            if nights >= min_nights:
                return percent
        return 0

    def compute_stay(self, start: DayLike, end: DayLike) -> StayPrice:
        """
        Compute total price for a stay.

        Args:
            start: Check-in day
            end: Check-out day (exclusive, guest leaves this day)
        """
        nights = days_between(start, end)
        if nights <= 0:
            return StayPrice.empty()

        breakdown = []
        subtotal = Decimal("0")
        for day in enumerate_days(start, end):
            price = self.price_for_night(day)
            breakdown.append((day, price))
            subtotal += price

        discount_percent = self.discount_percent_for(nights)
        discount_amount = to_money(subtotal * discount_percent / Decimal(100))
        final_price = to_money(subtotal - discount_amount)

        return StayPrice(
            nights=nights,
            subtotal=to_money(subtotal),
            discount_percent=discount_percent,
            discount_amount=discount_amount,
            final_price=final_price,
            breakdown=breakdown,
        )


def get_pricing_engine() -> PricingEngine:
    """Factory building the engine from settings"""
    from ..config import get_settings
    settings = get_settings()
    return PricingEngine(settings.default_nightly_price, settings.special_price_rules)
