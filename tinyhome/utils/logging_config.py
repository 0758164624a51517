"""
Structured Logging Configuration

Every record can carry two pieces of context set per request:
- request_id: set by RequestIdMiddleware, echoed as X-Request-ID
- order_reference: set by BookingService while a booking is being completed

With LOG_JSON=true (production) records are emitted as one JSON object per
line; otherwise as plain text with the same context appended.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
order_reference_var: ContextVar[str] = ContextVar("order_reference", default="")

# Attributes StructuredLogger may attach to a record
_CONTEXT_ATTRS = ("event", "order_reference", "duration_ms", "fields")


class ContextFilter(logging.Filter):
    """Copies the request/booking context vars onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        if not getattr(record, "order_reference", None):
            record.order_reference = order_reference_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        request_id = getattr(record, "request_id", None) or request_id_var.get()
        if request_id:
            payload["request_id"] = request_id

        for attr in _CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value not in (None, "", {}):
                payload[attr] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class PlainFormatter(logging.Formatter):
    """Human-readable lines for local development."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        tags = []
        if getattr(record, "request_id", ""):
            tags.append(f"req={record.request_id}")
        if getattr(record, "order_reference", ""):
            tags.append(f"order={record.order_reference}")
        return f"{line} [{' '.join(tags)}]" if tags else line


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter with booking-specific helpers.

    Plain calls (logger.info(...)) work as usual; `event()` attaches a name
    and free-form fields that the JSON formatter emits as-is.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def event(
        self,
        level: int,
        name: str,
        msg: str,
        order_reference: Optional[str] = None,
        duration_ms: Optional[float] = None,
        **fields
    ):
        extra: Dict[str, Any] = {"event": name, "fields": fields}
        if order_reference:
            extra["order_reference"] = order_reference
        if duration_ms is not None:
            extra["duration_ms"] = duration_ms
        self.log(level, msg, extra=extra)

    def booking_state_changed(self, order_reference: str, old_state: Optional[str], new_state: str):
        self.event(
            logging.INFO,
            "booking_state_changed",
            f"Booking {order_reference}: {old_state or '-'} -> {new_state}",
            order_reference=order_reference,
            old_state=old_state,
            new_state=new_state,
        )

    def reservation_persisted(
        self,
        order_reference: str,
        guest_name: str,
        start_day: str,
        end_day: str,
        final_price: str,
        duration_ms: Optional[float] = None
    ):
        self.event(
            logging.INFO,
            "reservation_persisted",
            f"Reservation saved: {guest_name} {start_day} -> {end_day} ({final_price})",
            order_reference=order_reference,
            duration_ms=duration_ms,
            start_day=start_day,
            end_day=end_day,
            final_price=final_price,
        )

    def api_request(self, method: str, path: str, status_code: int, duration_ms: float):
        level = logging.WARNING if status_code >= 500 else logging.INFO
        self.event(
            level,
            "api_request",
            f"{method} {path} - {status_code}",
            duration_ms=duration_ms,
            method=method,
            path=path,
            status_code=status_code,
        )


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Route tinyhome, uvicorn and root loggers to a single stdout handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines (production) instead of plain text
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JSONFormatter() if json_format else PlainFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True

    # Per-request logs come from RequestIdMiddleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name), {})


def set_request_context(request_id: str):
    request_id_var.set(request_id)


def clear_request_context():
    request_id_var.set("")


@contextmanager
def booking_context(order_reference: str) -> Iterator[None]:
    """Tag every record logged inside the block with the order reference."""
    token = order_reference_var.set(order_reference or "")
    try:
        yield
    finally:
        order_reference_var.reset(token)
