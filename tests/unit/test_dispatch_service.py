"""
Unit tests for the booking dispatch workflow.

Covers:
- Empty lookup: zero sends, "No bookings found" logged
- One render+send per booking, in lookup order
- Failure isolation: a failed render or send never blocks later bookings
- Lookup failures end the cycle without raising
"""

import json
from datetime import datetime, timedelta
from typing import List

import pytest

from booking_mailer.database import BookingLookupError, InMemoryBookingLookup, StubBookingLookup
from booking_mailer.dispatch import BookingDispatchService, DispatchSummary
from booking_mailer.domain.booking import Booking
from booking_mailer.domain.message import EmailMessage
from booking_mailer.notifications.email_service import SendError
from booking_mailer.notifications.renderer import BookingConfirmationRenderer, TemplateError


T = datetime(2024, 1, 1, 19, 58, 0)


class RecordingSender:
    """Sender fake recording every call; fails for configured recipients."""

    def __init__(self, failures=None):
        self.failures = failures or {}
        self.calls: List[tuple] = []

    def send(self, message: EmailMessage, to: str) -> None:
        self.calls.append((message, to))
        if to in self.failures:
            raise self.failures[to]


class RecordingRenderer:
    """Renderer fake recording order ids; fails for configured order ids."""

    def __init__(self, failing_order_ids=()):
        self.failing_order_ids = set(failing_order_ids)
        self.rendered: List[str] = []

    def render(self, booking: Booking) -> EmailMessage:
        self.rendered.append(booking.order_id)
        if booking.order_id in self.failing_order_ids:
            raise TemplateError(f"template broken for {booking.order_id}")
        return EmailMessage(subject=f"Subject {booking.order_id}", html_body="<p></p>")


class BrokenLookup:
    def __init__(self, error):
        self.error = error

    def find_bookings_by_time(self, booking_time):
        raise self.error


def make_bookings(count: int) -> List[Booking]:
    return [
        Booking(
            order_id=f"ORD{i:03d}",
            user_email=f"user{i}@example.com",
            booking_time=T,
            check_in_time=T + timedelta(hours=1),
        )
        for i in range(count)
    ]


def messages(caplog) -> List[str]:
    return [json.loads(record.getMessage())["message"] for record in caplog.records
            if record.name.startswith("booking_mailer")]


class TestEmptyLookup:
    """Scenario: the lookup returns nothing."""

    def test_no_sends_and_success(self, caplog):
        sender = RecordingSender()
        service = BookingDispatchService(InMemoryBookingLookup([]), RecordingRenderer(), sender)

        summary = service.process_bookings_for_time(T)

        assert isinstance(summary, DispatchSummary)
        assert sender.calls == []
        assert summary.bookings_found == 0
        assert any("No bookings found for" in m for m in messages(caplog))


class TestStubScenario:
    """Scenario: the stub lookup at 2024-01-01T19:58:00."""

    def test_two_sends_each_logged_successful(self, caplog):
        sender = RecordingSender()
        service = BookingDispatchService(StubBookingLookup(), BookingConfirmationRenderer(), sender)

        summary = service.process_bookings_for_time(T)

        assert [to for _, to in sender.calls] == ["user1@example.com", "user2@example.com"]
        assert summary.emails_sent == 2
        assert summary.emails_failed == 0
        logged = messages(caplog)
        assert "Successfully sent email for Order ID ORD123" in logged
        assert "Successfully sent email for Order ID ORD456" in logged

    def test_rendered_messages_reach_sender(self):
        sender = RecordingSender()
        service = BookingDispatchService(StubBookingLookup(), BookingConfirmationRenderer(), sender)

        service.process_bookings_for_time(T)

        first_message, _ = sender.calls[0]
        assert first_message.subject == "Booking Confirmation for Order ORD123"
        assert "Mon, 01 Jan 2024 20:58:00 UTC" in first_message.html_body

    def test_connection_error_for_first_booking(self, caplog):
        sender = RecordingSender(
            failures={"user1@example.com": SendError("error sending email: connection refused")}
        )
        service = BookingDispatchService(StubBookingLookup(), BookingConfirmationRenderer(), sender)

        summary = service.process_bookings_for_time(T)

        assert len(sender.calls) == 2
        assert [r.success for r in summary.results] == [False, True]
        logged = messages(caplog)
        failure = [m for m in logged if m.startswith("Failed to send email for Order ID ORD123")]
        assert failure and "connection refused" in failure[0]
        assert "Successfully sent email for Order ID ORD456" in logged
        assert logged.index(failure[0]) < logged.index("Successfully sent email for Order ID ORD456")


class TestOrderingAndIsolation:
    """Properties over arbitrary booking sequences."""

    @pytest.mark.parametrize("count", [1, 3, 7])
    def test_one_attempt_per_booking_in_order(self, count):
        bookings = make_bookings(count)
        renderer = RecordingRenderer()
        sender = RecordingSender()
        service = BookingDispatchService(InMemoryBookingLookup(bookings), renderer, sender)

        summary = service.process_bookings_for_time(T)

        assert renderer.rendered == [b.order_id for b in bookings]
        assert [to for _, to in sender.calls] == [b.user_email for b in bookings]
        assert [r.order_id for r in summary.results] == [b.order_id for b in bookings]

    @pytest.mark.parametrize("failing_index", [0, 2, 4])
    def test_send_failure_does_not_block_later_bookings(self, failing_index):
        bookings = make_bookings(5)
        failing = bookings[failing_index]
        sender = RecordingSender(failures={failing.user_email: SendError("550 mailbox unavailable")})
        service = BookingDispatchService(InMemoryBookingLookup(bookings), RecordingRenderer(), sender)

        summary = service.process_bookings_for_time(T)

        assert len(sender.calls) == 5
        assert summary.emails_failed == 1
        assert summary.results[failing_index].error == "550 mailbox unavailable"

    def test_render_failure_skips_send_for_that_booking_only(self, caplog):
        bookings = make_bookings(3)
        renderer = RecordingRenderer(failing_order_ids={"ORD001"})
        sender = RecordingSender()
        service = BookingDispatchService(InMemoryBookingLookup(bookings), renderer, sender)

        summary = service.process_bookings_for_time(T)

        assert renderer.rendered == ["ORD000", "ORD001", "ORD002"]
        assert [to for _, to in sender.calls] == ["user0@example.com", "user2@example.com"]
        assert [r.success for r in summary.results] == [True, False, True]
        assert any(m.startswith("Failed to send email for Order ID ORD001") for m in messages(caplog))

    def test_unexpected_error_is_isolated(self):
        bookings = make_bookings(2)
        sender = RecordingSender(failures={"user0@example.com": RuntimeError("socket closed")})
        service = BookingDispatchService(InMemoryBookingLookup(bookings), RecordingRenderer(), sender)

        summary = service.process_bookings_for_time(T)

        assert [r.success for r in summary.results] == [False, True]

    def test_all_failures_still_returns_summary(self):
        bookings = make_bookings(3)
        sender = RecordingSender(failures={b.user_email: SendError("down") for b in bookings})
        service = BookingDispatchService(InMemoryBookingLookup(bookings), RecordingRenderer(), sender)

        summary = service.process_bookings_for_time(T)

        assert summary.emails_sent == 0
        assert summary.emails_failed == 3


class TestLookupFailure:
    """The workflow never raises, even when the store is broken."""

    @pytest.mark.parametrize("error", [BookingLookupError("table missing"), RuntimeError("boom")])
    def test_lookup_error_logged_and_swallowed(self, error, caplog):
        sender = RecordingSender()
        service = BookingDispatchService(BrokenLookup(error), RecordingRenderer(), sender)

        summary = service.process_bookings_for_time(T)

        assert summary.results == []
        assert sender.calls == []
        assert any(m.startswith("Booking lookup failed for") for m in messages(caplog))
