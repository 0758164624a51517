"""
Pricing Router - stay quotes
"""
from fastapi import APIRouter, Depends, Query, Request

from ..config import settings
from ..dependencies import get_booking_service
from ..exceptions import ValidationError
from ..schemas.pricing import StayQuoteResponse
from ..services.booking_service import BookingService
from ..services.date_range import parse_day
from ..utils.rate_limiter import limiter, get_rate_limit

router = APIRouter(prefix="/api/pricing", tags=["Pricing"])


@router.get("/quote", response_model=StayQuoteResponse)
@limiter.limit(get_rate_limit("pricing_quote"))
def get_quote(
    request: Request,
    start: str = Query(..., description="Arrival day (YYYY-MM-DD)"),
    end: str = Query(..., description="Departure day (YYYY-MM-DD), exclusive"),
    service: BookingService = Depends(get_booking_service)
):
    """
    Nightly breakdown, discount tier and total for a stay.

    An empty or inverted range returns an all-zero quote.
    """
    try:
        start_day = parse_day(start)
        end_day = parse_day(end)
    except ValueError as e:
        raise ValidationError(f"Invalid day: {e}")

    stay = service.pricing.compute_stay(start_day, end_day)
    return StayQuoteResponse.from_stay(stay, currency=settings.currency)
