"""
Availability Router - calendar feed merged with local reservations
"""
from fastapi import APIRouter, Depends, Request

from ..dependencies import get_booking_service
from ..schemas.availability import AvailabilityResponse, AvailabilityDaysResponse, CalendarEventOut
from ..services.booking_service import BookingService
from ..utils.rate_limiter import limiter, get_rate_limit

router = APIRouter(prefix="/api/availability", tags=["Availability"])


@router.get("", response_model=AvailabilityResponse)
@limiter.limit(get_rate_limit("availability"))
def get_availability(
    request: Request,
    service: BookingService = Depends(get_booking_service)
):
    """
    All blocked periods, sorted by start.

    `source` tells whether the remote feed came from the cache or was just
    refetched. Fails with 500 when the feed cannot be fetched or parsed.
    """
    view = service.get_availability()
    return AvailabilityResponse(
        source=view.source,
        events=[CalendarEventOut.from_event(e) for e in view.events]
    )


@router.get("/days", response_model=AvailabilityDaysResponse)
@limiter.limit(get_rate_limit("availability"))
def get_availability_days(
    request: Request,
    service: BookingService = Depends(get_booking_service)
):
    """Booked nights and distinct arrival ("half") days, as day keys."""
    index = service.availability_index()
    return AvailabilityDaysResponse(
        booked_days=sorted(index.booked_days),
        arrival_days=sorted(index.arrival_days),
        today=service.today(),
        horizon=service.horizon(),
    )
