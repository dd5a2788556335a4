"""Database module - booking lookup collaborators."""

from .lookup import BookingLookup, InMemoryBookingLookup, StubBookingLookup
from .exceptions import BookingLookupError

__all__ = [
    "BookingLookup",
    "InMemoryBookingLookup",
    "StubBookingLookup",
    "BookingLookupError",
]
