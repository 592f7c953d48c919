"""
Shared utility functions for date parsing and text cleanup.
"""

import re
from datetime import date, datetime
from typing import Optional, Any, List
from dateutil import parser as dateparser


def parse_date_maybe(value: Any) -> Optional[date]:
    """
    Attempt to parse a stored date value, returning None on failure.

    Accepts date/datetime objects (Postgres drivers return these) and
    strings in any format dateutil understands (ISO dates from SQLite).

    Args:
        value: Date, datetime or date string

    Returns:
        Parsed date or None

    Examples:
        >>> parse_date_maybe("2025-04-10")
        datetime.date(2025, 4, 10)
        >>> parse_date_maybe("not a date")
        None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    try:
        return dateparser.parse(text).date()
    except (ValueError, TypeError, OverflowError):
        return None


def clean_text(text: str) -> str:
    """
    Collapse runs of whitespace into single spaces.

    Args:
        text: Raw text

    Returns:
        Cleaned text
    """
    return re.sub(r"\s+", " ", text or "").strip()


def split_csv(value: Any) -> List[str]:
    """
    Normalize a comma-separated string or an iterable into a list of values.

    Examples:
        >>> split_csv("NSF, DOE,")
        ['NSF', 'DOE']
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return [clean_text(str(item)) for item in items if clean_text(str(item))]
