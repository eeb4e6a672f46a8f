"""
Date helpers.

All persisted timestamps are naive UTC so that comparisons behave the same
on PostgreSQL and SQLite.
"""

from datetime import date, datetime, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """Current UTC time without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def format_short_date(value: Optional[Union[date, datetime]]) -> Optional[str]:
    """Render as ``Mar 5`` for chat messages."""
    if value is None:
        return None
    return f"{value.strftime('%b')} {value.day}"


def format_date_range(start: Optional[Union[date, datetime]],
                      end: Optional[Union[date, datetime]]) -> str:
    """``Mar 5 - Mar 7``, a single date when both ends match, ``N/A`` if unknown."""
    if start is None or end is None:
        return "N/A"
    start_text = format_short_date(start)
    end_text = format_short_date(end)
    if start_text == end_text:
        return start_text
    return f"{start_text} - {end_text}"
