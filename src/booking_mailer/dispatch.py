"""
Booking dispatch workflow.

For one captured instant: look up the bookings scheduled for it, then render
and send a confirmation email for each, in lookup order. The unit of failure
is a single booking; a failed render or send is logged and the loop moves on.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol

from booking_mailer.database.exceptions import BookingLookupError
from booking_mailer.database.lookup import BookingLookup
from booking_mailer.domain.booking import Booking
from booking_mailer.domain.message import EmailMessage
from booking_mailer.notifications.email_service import SendError
from booking_mailer.notifications.renderer import TemplateError
from booking_mailer.utils.logger import StructuredLogger, get_logger, mask_email


class Renderer(Protocol):
    def render(self, booking: Booking) -> EmailMessage: ...


class Sender(Protocol):
    def send(self, message: EmailMessage, to: str) -> None: ...


@dataclass
class DispatchResult:
    """Outcome of one booking's render and send."""

    order_id: str
    success: bool
    error: Optional[str] = None


@dataclass
class DispatchSummary:
    """Outcome of one dispatch cycle."""

    booking_time: datetime
    results: List[DispatchResult] = field(default_factory=list)

    @property
    def bookings_found(self) -> int:
        return len(self.results)

    @property
    def emails_sent(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def emails_failed(self) -> int:
        return sum(1 for result in self.results if not result.success)


class BookingDispatchService:
    """Sends confirmation emails for the bookings scheduled at a given time."""

    def __init__(
        self,
        lookup: BookingLookup,
        renderer: Renderer,
        sender: Sender,
        logger: Optional[StructuredLogger] = None,
    ):
        self.lookup = lookup
        self.renderer = renderer
        self.sender = sender
        self.logger = logger or get_logger(__name__)

    def process_bookings_for_time(self, booking_time: datetime) -> DispatchSummary:
        """
        Run one dispatch cycle for ``booking_time``.

        Never raises. Per-booking failures are recorded in the returned
        summary and logged with the booking's order id.

        Args:
            booking_time: Instant captured by the trigger

        Returns:
            DispatchSummary with one DispatchResult per booking attempted
        """
        summary = DispatchSummary(booking_time=booking_time)

        try:
            bookings = self.lookup.find_bookings_by_time(booking_time)
        except Exception as e:  # noqa: BLE001
            self.logger.error(
                f"Booking lookup failed for: {booking_time}",
                operation="dispatch_cycle",
                context={"error_type": type(e).__name__, "unexpected": not isinstance(e, BookingLookupError)},
                error=str(e),
            )
            return summary

        if not bookings:
            self.logger.info(f"No bookings found for: {booking_time}", operation="dispatch_cycle")
            return summary

        for booking in bookings:
            summary.results.append(self._dispatch_one(booking))

        self.logger.info(
            f"Dispatch cycle complete: {summary.emails_sent} sent, {summary.emails_failed} failed",
            operation="dispatch_cycle",
            context={
                "booking_time": booking_time.isoformat(),
                "bookings_found": summary.bookings_found,
                "emails_sent": summary.emails_sent,
                "emails_failed": summary.emails_failed,
            },
        )
        return summary

    def _dispatch_one(self, booking: Booking) -> DispatchResult:
        context = {"order_id": booking.order_id, "email_masked": mask_email(booking.user_email)}
        self.logger.info(
            f"Processing booking: Order ID {booking.order_id}",
            operation="dispatch_booking",
            context=context,
        )

        try:
            message = self.renderer.render(booking)
            self.sender.send(message, booking.user_email)
        except (TemplateError, SendError) as e:
            return self._failed(booking, e, context)
        except Exception as e:  # noqa: BLE001
            return self._failed(booking, e, {**context, "unexpected": True})

        self.logger.info(
            f"Successfully sent email for Order ID {booking.order_id}",
            operation="dispatch_booking",
            context=context,
        )
        return DispatchResult(order_id=booking.order_id, success=True)

    def _failed(self, booking: Booking, error: Exception, context) -> DispatchResult:
        self.logger.error(
            f"Failed to send email for Order ID {booking.order_id}: {error}",
            operation="dispatch_booking",
            context={**context, "error_type": type(error).__name__},
            error=str(error),
        )
        return DispatchResult(order_id=booking.order_id, success=False, error=str(error))
