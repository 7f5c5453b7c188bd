"""
Datetime utility functions.
Provides timezone-aware helpers shared by the repositories.
"""

from datetime import datetime, timedelta
from typing import Optional, Union
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def days_from_now(days: int) -> datetime:
    """Return the UTC datetime ``days`` days after now."""
    return utcnow() + timedelta(days=days)


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string (or pass through a datetime) into an aware UTC datetime.

    Naive values are assumed to be UTC. A bare date ("2025-09-01") parses to
    midnight UTC. Returns None for None or an empty string.

    Examples:
        >>> parse_datetime("2025-09-01T18:30:00Z").hour
        18
        >>> parse_datetime("2025-09-01").day
        1
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return pytz.UTC.localize(parsed)
    return parsed.astimezone(pytz.UTC)
