"""
Time Utility

Timezone-aware timestamps for change records and their display format
in notifications (e.g., "10/19/2026, 03:04 PM").
"""

from datetime import datetime
import pytz


def utc_now():
    """
    Current time as a timezone-aware UTC datetime.

    Returns:
        datetime: Now, with tzinfo set to UTC
    """
    return datetime.now(pytz.utc)


def format_display_time(dt, timezone="UTC"):
    """
    Format a timestamp for humans in the given timezone.

    Args:
        dt (datetime): Timestamp; naive values are treated as UTC
        timezone (str): Timezone string (default: 'UTC')

    Returns:
        str: Timestamp as "MM/DD/YYYY, HH:MM AM"

    Raises:
        ValueError: If timezone is not a known timezone name
    """
    try:
        tz = pytz.timezone(timezone)
    except pytz.UnknownTimeZoneError as e:
        raise ValueError(f"Unknown timezone '{timezone}'") from e

    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)

    return dt.astimezone(tz).strftime("%m/%d/%Y, %I:%M %p")
