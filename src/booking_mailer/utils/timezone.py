"""
Time helpers for the booking mailer.

Provides the current time in the configured scheduling timezone and a
locale-independent RFC 1123 formatter for timestamps shown to customers.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "UTC"

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def now_in_timezone(tz_name: str = DEFAULT_TIMEZONE, aware: bool = True) -> datetime:
    """
    Return the current time in the given IANA timezone.

    Args:
        tz_name: Timezone name such as "Asia/Seoul" or "UTC".
        aware: When False, strips tzinfo from the result.

    Returns:
        datetime: Current time in ``tz_name``.
    """
    current = datetime.now(tz=ZoneInfo(tz_name))
    return current if aware else current.replace(tzinfo=None)


def format_rfc1123(value: datetime) -> str:
    """
    Format ``value`` as ``"Mon, 02 Jan 2006 15:04:05 MST"``.

    Day and month names are always English. Naive datetimes are labelled UTC.
    """
    zone = value.tzname() or "UTC"
    return (
        f"{_WEEKDAYS[value.weekday()]}, {value.day:02d} {_MONTHS[value.month - 1]} "
        f"{value.year:04d} {value.hour:02d}:{value.minute:02d}:{value.second:02d} {zone}"
    )
