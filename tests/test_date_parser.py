"""Tests for date parser with relative dates."""

from datetime import date, timedelta

import pytest

from ledgerkit.utils.date_parser import parse_date, parse_optional_date


def test_parse_absolute_date():
    """Test parsing absolute dates."""
    result = parse_date("2024-01-15")
    assert result == date(2024, 1, 15)


def test_parse_long_form_date():
    result = parse_date("January 15, 2024")
    assert result == date(2024, 1, 15)


def test_parse_today():
    """Test parsing 'today'."""
    result = parse_date("today")
    assert result == date.today()


def test_parse_yesterday():
    """Test parsing 'yesterday'."""
    result = parse_date("yesterday")
    assert result == date.today() - timedelta(days=1)


def test_parse_tomorrow():
    """Test parsing 'tomorrow'."""
    result = parse_date("tomorrow")
    assert result == date.today() + timedelta(days=1)


def test_parse_start_and_end_of_month():
    today = date.today()
    start = parse_date("start of month")
    end = parse_date("end of month")
    assert start == today.replace(day=1)
    assert end.month == today.month
    assert (end + timedelta(days=1)).day == 1


def test_parse_start_and_end_of_year():
    today = date.today()
    assert parse_date("start of year") == date(today.year, 1, 1)
    assert parse_date("End of Year") == date(today.year, 12, 31)


def test_parse_invalid_date():
    """Test that invalid dates raise ValueError."""
    with pytest.raises(ValueError, match="Could not parse date"):
        parse_date("not a date")


def test_parse_optional_date():
    assert parse_optional_date(None) is None
    assert parse_optional_date("  ") is None
    assert parse_optional_date("2024-02-29") == date(2024, 2, 29)
