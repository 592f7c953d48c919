"""Tests for money, date and text helpers."""

from datetime import date, datetime, timedelta

import pytest

from grantfinder.core.money import format_usd_amount, parse_usd_amount
from grantfinder.core.time_utils import days_until, offset_date
from grantfinder.core.utils import clean_text, parse_date_maybe, split_csv

from conftest import TODAY


# ============================================================
# Money
# ============================================================

@pytest.mark.parametrize("text,expected", [
    ("$50,000", 50_000),
    ("$50k", 50_000),
    ("1.5M", 1_500_000),
    ("250000", 250_000),
    ("$5,000,000+", 5_000_000),
    ("2 million", 2_000_000),
    ("lots", None),
    ("", None),
    (None, None),
])
def test_parse_usd_amount(text, expected):
    assert parse_usd_amount(text) == expected


def test_format_usd_amount():
    assert format_usd_amount(1_500_000) == "$1,500,000"
    assert format_usd_amount(None) == "Not specified"


# ============================================================
# Dates
# ============================================================

class TestDates:
    def test_parse_date_maybe(self):
        assert parse_date_maybe("2025-04-10") == date(2025, 4, 10)
        assert parse_date_maybe(datetime(2025, 4, 10, 12, 30)) == date(2025, 4, 10)
        assert parse_date_maybe(date(2025, 4, 10)) == date(2025, 4, 10)
        assert parse_date_maybe("not a date") is None
        assert parse_date_maybe("") is None

    def test_days_until(self):
        assert days_until(TODAY + timedelta(days=5), TODAY) == 5
        assert days_until(TODAY - timedelta(days=1), TODAY) == -1
        assert days_until(None, TODAY) is None

    def test_offset_date(self):
        assert offset_date(TODAY, 31) == date(2025, 2, 1)


# ============================================================
# Text
# ============================================================

def test_clean_text():
    assert clean_text("  many \n  spaces ") == "many spaces"


def test_split_csv():
    assert split_csv("NSF, DOE,") == ["NSF", "DOE"]
    assert split_csv(["a ", "", "b"]) == ["a", "b"]
    assert split_csv(None) == []
    with pytest.raises(TypeError):
        split_csv(3)
