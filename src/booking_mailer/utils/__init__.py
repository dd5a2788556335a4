"""Shared helpers - structured logging and time formatting."""

from .logger import StructuredLogger, get_logger, log_operation, mask_email
from .timezone import format_rfc1123, now_in_timezone

__all__ = [
    "StructuredLogger",
    "get_logger",
    "log_operation",
    "mask_email",
    "format_rfc1123",
    "now_in_timezone",
]
