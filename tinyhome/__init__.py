"""Booking backend for a single vacation rental: availability, pricing, PayPal-verified reservations."""

__version__ = "1.0.0"
