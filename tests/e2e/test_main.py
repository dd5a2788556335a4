"""
End-to-end tests for the booking mailer entry point.

Exercises startup wiring, exit codes and one full dispatch cycle from the
trigger callback down to an SMTP fake.
"""

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import NoCredentialsError

from booking_mailer import main as main_module
from booking_mailer.config.settings import (
    DEFAULT_TEMPLATES_PATH,
    AppConfig,
    ConfigurationError,
    ScheduleConfig,
    SmtpConfig,
)
from booking_mailer.database.lookup import InMemoryBookingLookup, StubBookingLookup
from booking_mailer.notifications.email_service import SmtpEmailClient
from booking_mailer.notifications.renderer import BookingConfirmationRenderer
from booking_mailer.scheduler import JOB_ID


FIRE_TIME = datetime(2024, 1, 1, 19, 58, tzinfo=timezone.utc)


def make_config(cron_expression: str = "0 58 19 * * *") -> AppConfig:
    return AppConfig(
        smtp=SmtpConfig(
            host="smtp.test.local",
            port="587",
            username="mailer",
            password="s3cret-pass",
            from_address="bookings@test.local",
        ),
        schedule=ScheduleConfig(cron_expression=cron_expression, timezone="UTC"),
        templates_path=DEFAULT_TEMPLATES_PATH,
    )


class RecordingSMTP:
    """Minimal smtplib.SMTP stand-in that records delivered recipients."""

    delivered = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def ehlo(self):
        pass

    def has_extn(self, name):
        return False

    def login(self, user, password):
        pass

    def sendmail(self, from_addr, to_addrs, msg):
        RecordingSMTP.delivered.extend(to_addrs)

    def quit(self):
        pass


@pytest.fixture(autouse=True)
def reset_smtp_recorder():
    RecordingSMTP.delivered = []


@pytest.fixture
def stopped_event():
    event = threading.Event()
    event.set()
    return event


class TestMain:
    """Tests for main() exit codes."""

    def test_orderly_shutdown_returns_zero(self, stopped_event, caplog):
        with patch.object(main_module, "load_config", return_value=make_config()), patch.object(
            main_module, "setup_logging_redaction"
        ) as redaction:
            exit_code = main_module.main(stop_event=stopped_event)

        assert exit_code == 0
        redaction.assert_called_once()
        assert "Booking service started. Press Ctrl+C to exit." in caplog.text
        assert "Booking service stopped" in caplog.text

    def test_configuration_error_returns_one(self, stopped_event, caplog):
        with patch.object(
            main_module, "load_config", side_effect=ConfigurationError("SMTP credentials missing")
        ):
            exit_code = main_module.main(stop_event=stopped_event)

        assert exit_code == 1
        assert "Booking mailer failed to start" in caplog.text

    def test_unreachable_secret_store_returns_one(self, stopped_event, monkeypatch, caplog):
        for key in ["SMTP_USERNAME", "SMTP_PASSWORD", "USE_LOCAL_SECRETS_FILE", "BOOKING_MAILER_CONFIG"]:
            monkeypatch.delenv(key, raising=False)
        secrets_client = MagicMock()
        secrets_client.get_secret_value.side_effect = NoCredentialsError()
        monkeypatch.setattr("booking_mailer.config.settings.boto3.client", lambda *a, **kw: secrets_client)
        monkeypatch.setattr("booking_mailer.config.settings.time.sleep", lambda _: None)

        exit_code = main_module.main(stop_event=stopped_event)

        assert exit_code == 1
        assert "Booking mailer failed to start" in caplog.text
        assert "Unable to locate credentials" in caplog.text

    def test_invalid_cron_expression_returns_one(self, stopped_event):
        with patch.object(
            main_module, "load_config", return_value=make_config("58 19 * * *")
        ), patch.object(main_module, "setup_logging_redaction"):
            exit_code = main_module.main(stop_event=stopped_event)

        assert exit_code == 1

    def test_scheduler_failure_returns_one(self, stopped_event):
        with patch.object(main_module, "load_config", return_value=make_config()), patch.object(
            main_module, "setup_logging_redaction"
        ), patch.object(
            main_module.BookingScheduler, "run_until_stopped", side_effect=RuntimeError("thread died")
        ):
            exit_code = main_module.main(stop_event=stopped_event)

        assert exit_code == 1


class TestWiring:
    """Tests for dispatch service and scheduler construction."""

    def test_build_dispatch_service_defaults(self):
        service = main_module.build_dispatch_service(make_config())

        assert isinstance(service.lookup, StubBookingLookup)
        assert isinstance(service.renderer, BookingConfirmationRenderer)
        assert isinstance(service.sender, SmtpEmailClient)
        assert service.sender.config.host == "smtp.test.local"

    def test_build_scheduler_registers_job(self):
        booking_scheduler = main_module.build_scheduler(make_config(), InMemoryBookingLookup([]))

        assert booking_scheduler.scheduler.get_job(JOB_ID) is not None
        assert isinstance(booking_scheduler.dispatch_service.lookup, InMemoryBookingLookup)


class TestDispatchCycle:
    """One trigger firing through the real renderer and SMTP client."""

    def test_fire_delivers_stub_bookings(self):
        service = main_module.build_dispatch_service(make_config())
        service.sender.smtp_factory = RecordingSMTP
        booking_scheduler = main_module.BookingScheduler(
            service, make_config().schedule, clock=lambda: FIRE_TIME
        )

        summary = booking_scheduler.fire()

        assert summary.emails_sent == 2
        assert RecordingSMTP.delivered == ["user1@example.com", "user2@example.com"]
