"""
Timezone and calendar-date helpers for the booking engine.
Trips, discounts and availability slots are all whole calendar days; "today"
is evaluated in the platform display timezone (configurable, default Asia/Colombo).
"""

from datetime import datetime, date, timezone
import pytz
from flask import current_app, has_app_context
from typing import Optional, Union

DEFAULT_DISPLAY_TIMEZONE = "Asia/Colombo"


def get_display_timezone() -> str:
    """
    Get the configured display timezone.
    Falls back to Asia/Colombo outside an application context.
    """
    if has_app_context():
        return current_app.config.get('DISPLAY_TIMEZONE', DEFAULT_DISPLAY_TIMEZONE)
    return DEFAULT_DISPLAY_TIMEZONE


def utc_now() -> datetime:
    """
    Get current time in UTC.

    Returns:
        Current datetime in UTC
    """
    return datetime.now(timezone.utc)


def convert_utc_to_display(utc_dt: datetime) -> datetime:
    """
    Convert a UTC datetime to the configured display timezone.
    Naive datetimes are assumed to be UTC.
    """
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)
    display_tz = pytz.timezone(get_display_timezone())
    return utc_dt.astimezone(display_tz)


def today() -> date:
    """Current calendar date in the display timezone."""
    return convert_utc_to_display(utc_now()).date()


def parse_date(value: Union[str, date, datetime, None], field_name: str = "date") -> Optional[date]:
    """
    Normalise a date input to a ``date``.

    Args:
        value: ``date``, ``datetime``, ``YYYY-MM-DD`` or ISO datetime string
        field_name: Name of field for error messages

    Returns:
        date object, or None when value is None/empty

    Raises:
        ValueError: If the string cannot be parsed
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return convert_utc_to_display(value).date()
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid {field_name}: expected a date string")

    raw = value.strip()
    try:
        return datetime.strptime(raw, '%Y-%m-%d').date()
    except ValueError:
        pass
    try:
        # ISO datetime, e.g. 2024-06-01T00:00:00Z from the web client
        parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
    except ValueError:
        raise ValueError(f"Invalid {field_name} format. Use YYYY-MM-DD")
    if parsed.tzinfo is not None:
        return convert_utc_to_display(parsed).date()
    return parsed.date()
