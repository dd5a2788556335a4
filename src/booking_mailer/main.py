"""
Booking mailer - process entry point

Loads configuration, wires lookup, renderer and sender into the dispatch
workflow, registers the daily trigger and blocks until SIGINT/SIGTERM.
Exits 0 after an orderly shutdown and 1 when startup fails.
"""

import signal
import threading
from typing import Optional

from booking_mailer.config.settings import (
    AppConfig,
    ConfigurationError,
    load_config,
    setup_logging_redaction,
)
from booking_mailer.database.lookup import BookingLookup, StubBookingLookup
from booking_mailer.dispatch import BookingDispatchService
from booking_mailer.notifications.email_service import SmtpEmailClient
from booking_mailer.notifications.renderer import BookingConfirmationRenderer, EmailTemplateLoader
from booking_mailer.scheduler import BookingScheduler, SchedulerInitError
from booking_mailer.utils.logger import get_logger

logger = get_logger(__name__)


def build_dispatch_service(
    config: AppConfig, lookup: Optional[BookingLookup] = None
) -> BookingDispatchService:
    """Wire the dispatch workflow from configuration."""
    return BookingDispatchService(
        lookup=lookup or StubBookingLookup(),
        renderer=BookingConfirmationRenderer(EmailTemplateLoader(config.templates_path)),
        sender=SmtpEmailClient(config.smtp),
    )


def build_scheduler(config: AppConfig, lookup: Optional[BookingLookup] = None) -> BookingScheduler:
    """Wire the dispatch workflow and register its daily trigger."""
    return BookingScheduler(build_dispatch_service(config, lookup), config.schedule)


def install_signal_handlers(stop_event: threading.Event) -> None:
    """Set ``stop_event`` on SIGINT or SIGTERM."""

    def _handle(signum, frame):
        logger.info(
            "Shutdown signal received",
            operation="shutdown",
            context={"signal": signal.Signals(signum).name},
        )
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def main(stop_event: Optional[threading.Event] = None) -> int:
    """
    Run the booking mailer until a shutdown signal arrives.

    Args:
        stop_event: Optional event used instead of signal handlers (tests)

    Returns:
        Process exit code
    """
    try:
        config = load_config()
        setup_logging_redaction(config)
        booking_scheduler = build_scheduler(config)
    except (ConfigurationError, SchedulerInitError) as e:
        logger.error(
            "Booking mailer failed to start",
            operation="startup",
            context={"error_type": type(e).__name__},
            error=str(e),
        )
        return 1

    if stop_event is None:
        stop_event = threading.Event()
        install_signal_handlers(stop_event)

    logger.info(
        "Booking service started. Press Ctrl+C to exit.",
        operation="startup",
        context={
            "cron_expression": config.schedule.cron_expression,
            "timezone": config.schedule.timezone,
        },
    )

    try:
        booking_scheduler.run_until_stopped(stop_event)
    except Exception as e:
        logger.error(
            "Booking scheduler failed",
            operation="scheduler_run",
            context={"error_type": type(e).__name__},
            error=str(e),
        )
        return 1

    logger.info("Booking service stopped", operation="shutdown")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
