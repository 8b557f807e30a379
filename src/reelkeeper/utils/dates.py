"""Timestamp helpers for reel records."""

from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as dateutil_parser


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Serialize a datetime as ISO-8601 with millisecond precision.

    Naive datetimes are assumed to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat(timespec="milliseconds")


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse a stored ISO-8601 timestamp.

    Accepts the JavaScript form ("2024-05-01T10:00:00.000Z") written by earlier
    app versions as well as Python's isoformat output.

    Args:
        value: Timestamp string

    Returns:
        Aware datetime, or None if the string cannot be parsed
    """
    if not value:
        return None
    try:
        parsed = dateutil_parser.isoparse(value)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def display_date(moment: datetime) -> str:
    """Locale-formatted date in the local timezone (strftime %x)."""
    return moment.astimezone().strftime("%x")


def display_time(moment: datetime) -> str:
    """Locale-formatted time in the local timezone (strftime %X)."""
    return moment.astimezone().strftime("%X")
