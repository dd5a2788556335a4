"""Domain models - core business entities."""

from .booking import Booking
from .message import EmailMessage

__all__ = ["Booking", "EmailMessage"]
