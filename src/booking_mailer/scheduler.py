"""
Daily trigger for the booking dispatch workflow.

Wraps an APScheduler background scheduler with one cron job. Each firing
captures the current time in the configured timezone and runs one dispatch
cycle for it.
"""

import threading
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from booking_mailer.config.settings import ScheduleConfig
from booking_mailer.dispatch import BookingDispatchService, DispatchSummary
from booking_mailer.utils.logger import StructuredLogger, get_logger
from booking_mailer.utils.timezone import now_in_timezone


CRON_FIELDS = ("second", "minute", "hour", "day", "month", "day_of_week")
JOB_ID = "booking-confirmations"


class SchedulerInitError(Exception):
    """Raised when the scheduler or its job cannot be set up."""


def parse_cron_expression(expression: str, timezone: str = "UTC") -> CronTrigger:
    """
    Build a trigger from a seconds-inclusive cron expression.

    The expression has six fields: second, minute, hour, day, month,
    day_of_week. Field syntax is APScheduler's, so day_of_week takes
    ``mon``-``sun`` names or 0-6 counted from Monday.

    Raises:
        SchedulerInitError: If the expression is malformed
    """
    fields = expression.split()
    if len(fields) != len(CRON_FIELDS):
        raise SchedulerInitError(
            f"Cron expression '{expression}' must have {len(CRON_FIELDS)} fields "
            f"({' '.join(CRON_FIELDS)}), got {len(fields)}"
        )
    try:
        return CronTrigger(timezone=timezone, **dict(zip(CRON_FIELDS, fields)))
    except (ValueError, TypeError) as e:
        raise SchedulerInitError(f"Invalid cron expression '{expression}': {e}") from e


class BookingScheduler:
    """Runs the dispatch workflow on a daily cron schedule."""

    def __init__(
        self,
        dispatch_service: BookingDispatchService,
        schedule: ScheduleConfig,
        scheduler: Optional[BackgroundScheduler] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Register the dispatch job.

        Args:
            dispatch_service: Workflow invoked on every firing
            schedule: Cron expression and timezone
            scheduler: Optional APScheduler instance (default: BackgroundScheduler)
            clock: Optional callable returning "now" (default: now in schedule.timezone)
            logger: Optional structured logger instance

        Raises:
            SchedulerInitError: If the trigger or job cannot be created
        """
        self.dispatch_service = dispatch_service
        self.schedule = schedule
        self.logger = logger or get_logger(__name__)
        self.clock = clock or (lambda: now_in_timezone(schedule.timezone))

        self.trigger = parse_cron_expression(schedule.cron_expression, schedule.timezone)
        try:
            self.scheduler = scheduler or BackgroundScheduler(timezone=schedule.timezone)
            self.scheduler.add_job(
                self.fire,
                trigger=self.trigger,
                id=JOB_ID,
                name="Send booking confirmations",
                replace_existing=True,
            )
        except Exception as e:
            raise SchedulerInitError(f"Failed to register booking job: {e}") from e

    def fire(self) -> DispatchSummary:
        """Job callback: run one dispatch cycle for the current time."""
        current_time = self.clock()
        self.logger.info(
            f"Starting to process bookings for: {current_time}", operation="trigger_firing"
        )

        summary = self.dispatch_service.process_bookings_for_time(current_time)
        self.logger.info(
            f"Successfully processed bookings for: {current_time}",
            operation="trigger_firing",
            context={
                "bookings_found": summary.bookings_found,
                "emails_sent": summary.emails_sent,
                "emails_failed": summary.emails_failed,
            },
        )

        self.logger.info(
            f"Finished processing bookings for: {current_time}", operation="trigger_firing"
        )
        return summary

    def start(self) -> None:
        self.scheduler.start()
        job = self.scheduler.get_job(JOB_ID)
        self.logger.info(
            "Booking scheduler started",
            operation="scheduler_start",
            context={
                "cron_expression": self.schedule.cron_expression,
                "timezone": self.schedule.timezone,
                "next_run_time": str(job.next_run_time) if job else None,
            },
        )

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            self.logger.info("Booking scheduler stopped", operation="scheduler_shutdown")

    def run_until_stopped(self, stop_event: threading.Event, poll_interval: float = 1.0) -> None:
        """Start the scheduler and block until ``stop_event`` is set, then shut down."""
        self.start()
        try:
            while not stop_event.wait(poll_interval):
                pass
        finally:
            self.shutdown()
