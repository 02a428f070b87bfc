"""Database models."""

from app.models.booking import Booking, BookingNumberSequence, BookingStatusEvent
from app.models.provider import Service, ServiceProvider
from app.models.user import User

__all__ = [
    # User
    "User",
    # Provider directory / catalog
    "ServiceProvider",
    "Service",
    # Booking
    "Booking",
    "BookingStatusEvent",
    "BookingNumberSequence",
]
