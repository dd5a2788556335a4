"""
Structured logging utility for the booking mailer.

Provides JSON-formatted logging with built-in email address masking,
context injection, and operation timing.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from functools import wraps


def mask_email(email: Optional[str]) -> str:
    """
    Mask an email address to preserve privacy in logs.

    Format: first character of the local part, then ``***``, then the domain.

    Args:
        email: Email address such as "user1@example.com"

    Returns:
        Masked email string

    Example:
        >>> mask_email("user1@example.com")
        "u***@example.com"
    """
    if not email:
        return "unknown"

    local, sep, domain = email.partition("@")
    if not sep or not local or not domain:
        return "invalid"

    return f"{local[0]}***@{domain}"


# Filters attached to every StructuredLogger, including ones created later
_shared_filters: List[logging.Filter] = []


def add_shared_filter(log_filter: logging.Filter) -> None:
    """
    Attach ``log_filter`` to all existing package loggers and to every
    StructuredLogger created afterwards.

    Logger-level filters run before any handler sees the record, so the
    logger's own stream handler and propagated root handlers both get the
    filtered record.
    """
    if log_filter not in _shared_filters:
        _shared_filters.append(log_filter)
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if name.startswith("booking_mailer") and isinstance(candidate, logging.Logger):
            candidate.addFilter(log_filter)


def remove_shared_filter(log_filter: logging.Filter) -> None:
    """Detach ``log_filter`` from the registry and from package loggers."""
    if log_filter in _shared_filters:
        _shared_filters.remove(log_filter)
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if name.startswith("booking_mailer") and isinstance(candidate, logging.Logger):
            candidate.removeFilter(log_filter)


class StructuredLogger:
    """
    JSON-formatted logger with context injection and operation timing.

    All log output is JSON so that a log shipper can parse it line by line.
    """

    def __init__(self, name: str):
        """
        Initialize structured logger.

        Args:
            name: Logger name (typically __name__ from calling module)
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.DEBUG)

            formatter = logging.Formatter("%(message)s", datefmt="%Y-%m-%dT%H:%M:%S")
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

        for log_filter in _shared_filters:
            self.logger.addFilter(log_filter)

    def _format_log(
        self,
        level: str,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
        error: Optional[str] = None,
    ) -> str:
        """
        Format log entry as JSON.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR)
            message: Human-readable message
            operation: Operation name (e.g., "send_email", "dispatch_cycle")
            context: Context dict with order_id, masked email, etc.
            duration_ms: Operation duration in milliseconds
            error: Error message if applicable

        Returns:
            JSON-formatted log string
        """
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "message": message,
        }

        if operation:
            log_entry["operation"] = operation

        if context:
            log_entry["context"] = context

        if duration_ms is not None:
            log_entry["duration_ms"] = round(duration_ms, 2)

        if error:
            log_entry["error"] = error

        return json.dumps(log_entry, ensure_ascii=False, default=str)

    def debug(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Log debug message."""
        log_json = self._format_log("DEBUG", message, operation, context)
        self.logger.debug(log_json)

    def info(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
    ):
        """Log info message."""
        log_json = self._format_log("INFO", message, operation, context, duration_ms)
        self.logger.info(log_json)

    def warning(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        """Log warning message."""
        log_json = self._format_log("WARNING", message, operation, context, error=error)
        self.logger.warning(log_json)

    def error(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        duration_ms: Optional[float] = None,
    ):
        """Log error message."""
        log_json = self._format_log(
            "ERROR", message, operation, context, duration_ms, error
        )
        self.logger.error(log_json)


def log_operation(operation_name: str):
    """
    Decorator to automatically log operation start, duration, and completion.

    Usage:
        @log_operation("find_bookings_by_time")
        def find_bookings_by_time(self, booking_time):
            ...
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = StructuredLogger(func.__module__)

            context: Dict[str, Any] = {
                "function": func.__name__,
            }
            if len(args) > 0:
                context["arg_count"] = len(args)

            logger.debug(
                f"Starting {operation_name}", operation=operation_name, context=context
            )

            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                duration_ms = (time.time() - start_time) * 1000
                logger.info(
                    f"Completed {operation_name}",
                    operation=operation_name,
                    context=context,
                    duration_ms=duration_ms,
                )
                return result
            except Exception as e:
                duration_ms = (time.time() - start_time) * 1000
                logger.error(
                    f"Failed {operation_name}",
                    operation=operation_name,
                    context=context,
                    error=str(e),
                    duration_ms=duration_ms,
                )
                raise

        return wrapper

    return decorator


def get_logger(name: str) -> StructuredLogger:
    """
    Factory function to get a structured logger instance.

    Args:
        name: Logger name (typically __name__ from calling module)

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name)
