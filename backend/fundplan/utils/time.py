"""Time Utilities - UTC timestamps and elapsed-time helpers"""
from datetime import datetime, timezone
from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Attach UTC to naive datetimes.

    pymongo hands back naive datetimes unless the client is tz-aware;
    everything stored by this service is UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_iso(dt: datetime) -> str:
    """
    Format datetime to ISO 8601 string

    Args:
        dt: Datetime object

    Returns:
        ISO formatted string with Z suffix for UTC
    """
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def parse_iso(iso_string: str) -> datetime:
    """Parse ISO 8601 string to a UTC datetime"""
    return ensure_utc(date_parser.isoparse(iso_string))


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed real time from start to end, in hours"""
    delta = ensure_utc(end) - ensure_utc(start)
    return delta.total_seconds() / 3600
