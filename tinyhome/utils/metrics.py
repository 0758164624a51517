"""
Prometheus Metrics

Provides application metrics in Prometheus text format:
- HTTP request metrics (count, duration, status codes)
- Business metrics (reservations, revenue)
- Collaborator metrics (calendar feed, PayPal, email)

Metrics register themselves on creation; /metrics renders the registry.
"""

from typing import Dict, List, Tuple
from collections import defaultdict
from decimal import Decimal
from threading import Lock

_REGISTRY: List["_Metric"] = []

# Collaborator calls are slow (network), so buckets start at 50ms
NETWORK_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, float("inf"))
HTTP_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf"))


def _format_value(value: float) -> str:
    """Whole numbers without a trailing .0 (reservations_total 3, not 3.0)"""
    return str(int(value)) if float(value).is_integer() else repr(float(value))


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, description: str, labels: tuple = (), register: bool = True):
        self.name = name
        self.description = description
        self.labels = labels
        self._lock = Lock()
        if register:
            _REGISTRY.append(self)

    def _key(self, label_values: dict) -> tuple:
        return tuple(str(label_values.get(label, "")) for label in self.labels)

    def _label_str(self, key: tuple, **extra) -> str:
        pairs = list(zip(self.labels, key)) + list(extra.items())
        if not pairs:
            return ""
        return "{" + ",".join(f'{k}="{v}"' for k, v in pairs) + "}"

    def render(self) -> List[str]:
        return [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]


class Counter(_Metric):
    kind = "counter"

    def __init__(self, name: str, description: str, labels: tuple = (), register: bool = True):
        super().__init__(name, description, labels, register)
        self._values: Dict[tuple, float] = defaultdict(float)

    def inc(self, value: float = 1, **label_values):
        if value < 0:
            raise ValueError("Counters only go up")
        key = self._key(label_values)
        with self._lock:
            self._values[key] += value

    def get(self, **label_values) -> float:
        key = self._key(label_values)
        with self._lock:
            return self._values.get(key, 0.0)

    def render(self) -> List[str]:
        lines = super().render()
        with self._lock:
            values = dict(self._values)
        if not values and not self.labels:
            lines.append(f"{self.name} 0")
        for key, value in values.items():
            lines.append(f"{self.name}{self._label_str(key)} {_format_value(value)}")
        return lines


class Histogram(_Metric):
    """Cumulative buckets plus sum and count per label set."""

    kind = "histogram"

    def __init__(
        self,
        name: str,
        description: str,
        labels: tuple = (),
        buckets: tuple = HTTP_BUCKETS,
        register: bool = True
    ):
        super().__init__(name, description, labels, register)
        self.buckets = tuple(sorted(buckets))
        self._series: Dict[tuple, Tuple[List[int], List[float]]] = {}

    def observe(self, value: float, **label_values):
        key = self._key(label_values)
        with self._lock:
            counts, totals = self._series.setdefault(key, ([0] * len(self.buckets), [0.0, 0]))
            for i, bound in enumerate(self.buckets):
                if value <= bound:
                    counts[i] += 1
            totals[0] += value
            totals[1] += 1

    def count(self, **label_values) -> int:
        key = self._key(label_values)
        with self._lock:
            series = self._series.get(key)
            return int(series[1][1]) if series else 0

    def render(self) -> List[str]:
        lines = super().render()
        with self._lock:
            series = {k: (list(c), list(t)) for k, (c, t) in self._series.items()}
        for key, (counts, (total, count)) in series.items():
            for bound, bucket_count in zip(self.buckets, counts):
                le = "+Inf" if bound == float("inf") else repr(bound)
                lines.append(f"{self.name}_bucket{self._label_str(key, le=le)} {bucket_count}")
            lines.append(f"{self.name}_sum{self._label_str(key)} {_format_value(total)}")
            lines.append(f"{self.name}_count{self._label_str(key)} {int(count)}")
        return lines


# ================================
# APPLICATION METRICS
# ================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labels=("method", "path", "status_code")
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labels=("method", "path")
)

reservations_total = Counter(
    "reservations_total",
    "Total paid reservations recorded"
)

revenue_total = Counter(
    "revenue_total",
    "Total revenue from reservations"
)

calendar_lookups_total = Counter(
    "calendar_lookups_total",
    "Calendar feed lookups by origin",
    labels=("origin",)
)

calendar_fetch_total = Counter(
    "calendar_fetch_total",
    "Remote calendar fetches",
    labels=("status",)
)

calendar_fetch_duration_seconds = Histogram(
    "calendar_fetch_duration_seconds",
    "Remote calendar fetch duration in seconds",
    buckets=NETWORK_BUCKETS
)

payment_verifications_total = Counter(
    "payment_verifications_total",
    "PayPal order verifications",
    labels=("outcome",)
)

payment_verification_duration_seconds = Histogram(
    "payment_verification_duration_seconds",
    "PayPal order verification duration in seconds",
    buckets=NETWORK_BUCKETS
)

notifications_total = Counter(
    "notifications_total",
    "Confirmation emails",
    labels=("kind", "status")
)


def format_prometheus_metrics() -> str:
    """Render every registered metric in Prometheus text format."""
    lines = []
    for metric in _REGISTRY:
        lines.extend(metric.render())
    return "\n".join(lines) + "\n"


# ================================
# CONVENIENCE FUNCTIONS
# ================================

def record_http_request(method: str, path: str, status_code: int, duration: float):
    http_requests_total.inc(method=method, path=path, status_code=status_code)
    http_request_duration_seconds.observe(duration, method=method, path=path)


def record_reservation(final_price: Decimal):
    reservations_total.inc()
    revenue_total.inc(float(final_price))


def record_calendar_lookup(origin: str):
    calendar_lookups_total.inc(origin=origin)


def record_calendar_fetch(success: bool, duration: float):
    calendar_fetch_total.inc(status="success" if success else "error")
    calendar_fetch_duration_seconds.observe(duration)


def record_payment_verification(outcome: str, duration: float):
    payment_verifications_total.inc(outcome=outcome)
    payment_verification_duration_seconds.observe(duration)


def record_notification(kind: str, success: bool):
    notifications_total.inc(kind=kind, status="success" if success else "error")
