"""Custom validation utilities."""

import re
from datetime import date

TIME_OF_DAY_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def validate_time_of_day(value: str) -> bool:
    """Validate a 24-hour ``HH:MM`` time string.

    Args:
        value: Time string to validate

    Returns:
        bool: True if valid
    """
    return bool(TIME_OF_DAY_PATTERN.match(value or ""))


def time_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` to minutes after midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def weekday_name(day: date) -> str:
    """Lowercase English weekday name, e.g. 'monday'."""
    return day.strftime("%A").lower()


def clean_text(value: str | None) -> str | None:
    """Trim free text; empty strings become None."""
    if value is None:
        return None
    value = value.strip()
    return value or None
