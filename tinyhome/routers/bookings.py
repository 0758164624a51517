"""
Bookings Router - payment verification + reservation
"""
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError

from ..dependencies import get_booking_service
from ..exceptions import ValidationError
from ..schemas.booking import (
    BookingCompleteRequest, BookingCompleteResponse, LegacyPaypalCompleteRequest
)
from ..services.booking_service import BookingService
from ..utils.rate_limiter import limiter, get_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Bookings"])


@router.post("/booking/complete", response_model=BookingCompleteResponse)
@limiter.limit(get_rate_limit("booking_complete"))
def complete_booking(
    request: Request,
    payload: BookingCompleteRequest,
    service: BookingService = Depends(get_booking_service)
):
    """
    Verify the PayPal order, record the reservation and send confirmations.

    - 400: missing/invalid fields, minimum stay, payment not completed
    - 409: dates no longer available (checked before PayPal is called)
    - 500: PayPal or calendar feed unreachable (safe to retry)

    Email failures never turn a recorded reservation into an error.
    """
    logger.info(f"Booking completion requested for order {payload.order_reference}")
    outcome = service.complete_booking(payload)
    return BookingCompleteResponse(success=outcome.success, message=outcome.message)


@router.post("/paypal/complete", response_model=BookingCompleteResponse, include_in_schema=False)
@limiter.limit(get_rate_limit("booking_complete"))
def complete_booking_legacy(
    request: Request,
    payload: LegacyPaypalCompleteRequest,
    service: BookingService = Depends(get_booking_service)
):
    """First front-end release payload ({orderId, reservationData})."""
    try:
        booking_request = payload.to_booking_request()
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid reservationData: {e.errors()[0].get('msg', 'invalid')}")
    outcome = service.complete_booking(booking_request)
    return BookingCompleteResponse(success=outcome.success, message=outcome.message)
