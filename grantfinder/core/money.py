"""
Money parsing utilities for US dollar funding amounts.

Handles various formats:
- "$50,000" → 50000
- "$50k" → 50000
- "1.5M" → 1500000
- "250000" → 250000
"""

import re
from typing import Optional


# Magnitude multipliers
_MAGNITUDE_MAP = {
    "thousand": 1_000,
    "million": 1_000_000,
    "billion": 1_000_000_000,
    "bn": 1_000_000_000,
    "k": 1_000,
    "m": 1_000_000,
    "b": 1_000_000_000,
}

# Long magnitude words are listed before their one-letter forms
_AMOUNT_PATTERN = re.compile(
    r"^\$?\s*([\d,]*\.?\d+)\s*(thousand|million|billion|bn|k|m|b)?\+?$",
    re.IGNORECASE
)


def parse_usd_amount(text: str) -> Optional[int]:
    """
    Parse a US dollar amount into whole dollars.

    Examples:
        "$50,000" → 50_000
        "$50k" → 50_000
        "1.5M" → 1_500_000
        "$5,000,000+" → 5_000_000
        "lots" → None

    Args:
        text: Raw amount text

    Returns:
        Amount in dollars, or None if the text is not an amount
    """
    if text is None:
        return None

    text = re.sub(r"\s+", " ", str(text)).strip()
    if not text:
        return None

    match = _AMOUNT_PATTERN.match(text)
    if not match:
        return None

    number_str = match.group(1).replace(",", "")
    magnitude_str = (match.group(2) or "").lower()

    try:
        base_amount = float(number_str)
    except ValueError:
        return None

    multiplier = _MAGNITUDE_MAP.get(magnitude_str, 1)

    return int(round(base_amount * multiplier))


def format_usd_amount(amount: Optional[float]) -> str:
    """
    Format a dollar amount for display.

    Examples:
        10_000 → "$10,000"
        1_500_000 → "$1,500,000"

    Args:
        amount: Amount in dollars

    Returns:
        Formatted string
    """
    if amount is None:
        return "Not specified"

    return f"${int(amount):,}"
