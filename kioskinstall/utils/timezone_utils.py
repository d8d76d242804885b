"""
Timezone utility functions for KioskInstall.
Handles conversion between UTC and the display timezone used on capture
watermarks and report dates (configurable, default America/New_York).
"""

from datetime import datetime, timezone
from typing import Optional, Union
import pytz
from flask import current_app, has_app_context

DEFAULT_DISPLAY_TIMEZONE = "America/New_York"


def get_display_timezone() -> str:
    """
    Get the configured display timezone name.
    Reads DISPLAY_TIMEZONE from the app config when an app context is active.
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


def convert_utc_to_display(utc_dt: Union[datetime, str], tz_name: Optional[str] = None) -> datetime:
    """
    Convert a UTC datetime to the display timezone.

    Args:
        utc_dt: UTC datetime object or ISO string
        tz_name: Override for the configured display timezone

    Returns:
        Datetime object in the display timezone
    """
    if isinstance(utc_dt, str):
        if utc_dt.endswith('Z'):
            utc_dt = utc_dt[:-1]
        parsed_dt = datetime.fromisoformat(utc_dt)
        if parsed_dt.tzinfo is None:
            parsed_dt = parsed_dt.replace(tzinfo=timezone.utc)
        utc_dt = parsed_dt
    elif utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)

    display_tz = pytz.timezone(tz_name or get_display_timezone())
    return utc_dt.astimezone(display_tz)


def format_capture_timestamp(utc_dt: datetime, tz_name: Optional[str] = None) -> str:
    """Render a capture moment the way it is burned into the watermark.

    Month, day and hour are not zero-padded, e.g. "1/5/2026, 2:30:00 PM".
    """
    local = convert_utc_to_display(utc_dt, tz_name)
    hour = local.hour % 12 or 12
    meridiem = 'AM' if local.hour < 12 else 'PM'
    return f"{local.month}/{local.day}/{local.year}, {hour}:{local.minute:02d}:{local.second:02d} {meridiem}"


def format_display_date(utc_dt: datetime, tz_name: Optional[str] = None) -> str:
    """Short date for report title slides, e.g. 10/19/2026."""
    local = convert_utc_to_display(utc_dt, tz_name)
    return f"{local.month}/{local.day}/{local.year}"


def display_date_stamp(utc_dt: datetime, tz_name: Optional[str] = None) -> str:
    """ISO date in the display timezone, used in report file names."""
    return convert_utc_to_display(utc_dt, tz_name).strftime("%Y-%m-%d")
