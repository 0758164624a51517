"""
Health Check Endpoints

- /health/live - Liveness check (is process running)
- /health/ready - Readiness check (feed configured, cache state)
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from datetime import datetime, timezone

from ..config import settings
from ..dependencies import get_booking_service
from ..services.booking_service import BookingService

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("/live")
async def liveness():
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/ready")
def readiness(service: BookingService = Depends(get_booking_service)):
    """
    Ready when the calendar feed is configured. Does not hit the feed itself;
    the cache state shows whether the last fetch succeeded.
    """
    checks = {
        "calendar_feed": {"status": "configured" if settings.ical_url else "missing"},
        "calendar_cache": service.cache.describe(service.clock()),
        "payments": {"environment": "live" if settings.paypal_is_live else "sandbox"},
        "email": {"status": "enabled" if service.notifier.enabled else "disabled"},
        "reservations": {"count": len(service.store)},
    }
    ready = bool(settings.ical_url)
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "not_ready", "checks": checks},
    )
