"""
Booking domain model.

Represents one reservation whose customer is due a confirmation email.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Any


@dataclass(frozen=True)
class Booking:
    """
    Immutable booking record handed out by a booking lookup.

    Attributes:
        order_id: Opaque, unique order identifier (e.g. "ORD123")
        user_email: Customer address the confirmation goes to (not validated)
        booking_time: Instant the lookup is keyed on
        check_in_time: Associated check-in instant, informational only
    """

    order_id: str
    user_email: str
    booking_time: datetime
    check_in_time: datetime

    def __post_init__(self):
        if not self.order_id:
            raise ValueError("order_id must be a non-empty string")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Booking":
        """
        Create Booking from a mapping (e.g. a row returned by a store).

        Datetime fields may be given as ``datetime`` objects or ISO 8601
        strings. Unknown keys are ignored.

        Args:
            data: Dictionary with booking data

        Returns:
            Booking instance
        """
        return cls(
            order_id=str(data["order_id"]),
            user_email=str(data["user_email"]),
            booking_time=_parse_datetime(data["booking_time"]),
            check_in_time=_parse_datetime(data["check_in_time"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert Booking to a dictionary with ISO 8601 timestamps."""
        data = asdict(self)
        data["booking_time"] = self.booking_time.isoformat()
        data["check_in_time"] = self.check_in_time.isoformat()
        return data


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
