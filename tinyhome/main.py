from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import logging
import time
import uuid

from .config import settings
from .exceptions import BookingError
from .routers import availability, bookings, pricing, health, metrics
from .utils.logging_config import setup_logging, get_logger, set_request_context, clear_request_context
from .utils.metrics import record_http_request
from .utils.rate_limiter import limiter

logger = get_logger("tinyhome.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(settings.log_level, json_format=settings.log_json)
    startup_logger = logging.getLogger("tinyhome")

    startup_logger.info(f"Starting {settings.property_name} booking backend ({settings.environment})")
    startup_logger.info(f"CORS origins: {settings.cors_origins}")
    if not settings.ical_url:
        startup_logger.error("ICAL_URL is not set: availability requests will fail")
    if not settings.paypal_client_id or not settings.paypal_client_secret:
        startup_logger.warning("PayPal keys not found: payment verification will fail")
    startup_logger.info(f"PayPal environment: {'live' if settings.paypal_is_live else 'sandbox'}")

    yield

    startup_logger.info("Shutting down booking backend")


app = FastAPI(
    title=f"{settings.property_name} - Booking API",
    description="Availability, pricing and PayPal-verified reservations",
    version="1.0.0",
    lifespan=lifespan
)

# Rate limiter state
app.state.limiter = limiter


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id (log context + response header) and records timing"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
            duration = time.perf_counter() - start
            route = request.scope.get("route")
            # One label for every unmatched path
            path = getattr(route, "path", "unmatched")
            record_http_request(request.method, path, response.status_code, duration)
            logger.api_request(request.method, request.url.path, response.status_code, round(duration * 1000, 1))
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_context()


app.add_middleware(RequestIdMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


# ================================
# ERROR HANDLERS
# ================================

def _error_body(message: str, code: str, details: dict = None) -> dict:
    body = {"success": False, "message": message, "code": code}
    if details:
        body["details"] = details
    return body


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}", exc_info=exc)
    else:
        logger.info(f"Rejected {request.method} {request.url.path}: {exc.code} ({exc.message})")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.code, exc.details),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
    return JSONResponse(
        status_code=400,
        content=_error_body(message, "validation_error", {"errors": len(errors)}),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content=_error_body("Too many attempts, please try again later", "rate_limited"),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", "internal_error"),
    )


# Include routers
app.include_router(availability.router)
app.include_router(pricing.router)
app.include_router(bookings.router)
app.include_router(health.router)
app.include_router(metrics.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tinyhome.main:app", host="0.0.0.0", port=4000, reload=not settings.is_production)
