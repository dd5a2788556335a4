"""
Booking lookup implementations.

A lookup answers one question: which bookings are scheduled for a given
instant. Production and test lookups are swapped by passing a different
object to the dispatch service; anything with a matching
``find_bookings_by_time`` method qualifies.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Protocol

from booking_mailer.domain.booking import Booking
from booking_mailer.database.exceptions import BookingLookupError
from booking_mailer.utils.logger import get_logger, log_operation


logger = get_logger(__name__)


class BookingLookup(Protocol):
    """Read-only access to bookings keyed by booking time."""

    def find_bookings_by_time(self, booking_time: datetime) -> List[Booking]: ...


class StubBookingLookup:
    """
    Stand-in store returning two fabricated bookings for any instant.

    The requested time is used as-is for ``booking_time``; check-in times are
    one and two hours later.
    """

    @log_operation("find_bookings_by_time")
    def find_bookings_by_time(self, booking_time: datetime) -> List[Booking]:
        return [
            Booking(
                order_id="ORD123",
                user_email="user1@example.com",
                booking_time=booking_time,
                check_in_time=booking_time + timedelta(hours=1),
            ),
            Booking(
                order_id="ORD456",
                user_email="user2@example.com",
                booking_time=booking_time,
                check_in_time=booking_time + timedelta(hours=2),
            ),
        ]


class InMemoryBookingLookup:
    """
    Lookup over a fixed collection of bookings.

    A booking matches when its ``booking_time`` lies within ``match_window``
    of the requested instant. The default window of zero means exact
    equality. Results keep the order the bookings were supplied in.
    """

    def __init__(self, bookings: Iterable[Booking], match_window: timedelta = timedelta(0)):
        if match_window < timedelta(0):
            raise ValueError("match_window must not be negative")
        self._bookings = list(bookings)
        self.match_window = match_window

    @log_operation("find_bookings_by_time")
    def find_bookings_by_time(self, booking_time: datetime) -> List[Booking]:
        try:
            matches = [
                booking
                for booking in self._bookings
                if abs(booking.booking_time - booking_time) <= self.match_window
            ]
        except TypeError as e:
            # naive vs. timezone-aware datetimes
            raise BookingLookupError(f"Cannot compare booking times with {booking_time!r}: {e}") from e
        logger.debug(
            f"Matched {len(matches)} of {len(self._bookings)} bookings",
            operation="find_bookings_by_time",
            context={"match_window_seconds": self.match_window.total_seconds()},
        )
        return matches
