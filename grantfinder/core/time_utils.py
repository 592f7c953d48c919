"""
Date utilities for deadline filtering and urgency scoring.
All close dates are compared as calendar dates in UTC.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def today_utc() -> date:
    """
    Get the current calendar date in UTC.

    Returns:
        date: Today's date
    """
    return datetime.now(timezone.utc).date()


def offset_date(today: date, days: int) -> date:
    """Return the date `days` after `today`."""
    return today + timedelta(days=days)


def days_until(close_date: Optional[date], today: date) -> Optional[int]:
    """
    Whole days remaining until a close date.

    Args:
        close_date: Deadline, or None for rolling opportunities
        today: Reference date

    Returns:
        Days left (negative once expired), or None when there is no deadline
    """
    if close_date is None:
        return None
    return (close_date - today).days
