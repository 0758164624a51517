from . import availability, bookings, pricing, health, metrics

__all__ = ["availability", "bookings", "pricing", "health", "metrics"]
