"""
Test suite for date utilities in Home Account.
"""

from datetime import date, datetime

import pandas as pd
import pytest

from home_account.utils.date_utils import (
    month_key,
    parse_date,
    parse_optional_date,
    previous_day_iso,
    utc_now,
)


def test_parse_date_iso_format():
    """Test parsing ISO format dates."""
    assert parse_date("2024-01-15") == date(2024, 1, 15)


def test_parse_date_day_first_format():
    """Test parsing day-first format dates."""
    assert parse_date("15/01/2024") == date(2024, 1, 15)
    assert parse_date("15-01-2024") == date(2024, 1, 15)


def test_parse_date_objects():
    """Test parsing datetime, date and Timestamp objects."""
    assert parse_date(datetime(2024, 1, 15, 10, 30)) == date(2024, 1, 15)
    assert parse_date(date(2024, 1, 15)) == date(2024, 1, 15)
    assert parse_date(pd.Timestamp("2024-01-15")) == date(2024, 1, 15)


def test_parse_date_invalid():
    """Test that invalid input raises."""
    with pytest.raises(ValueError):
        parse_date("not a date")
    with pytest.raises(ValueError):
        parse_date("   ")
    with pytest.raises(ValueError):
        parse_date(None)
    with pytest.raises(TypeError):
        parse_date(20240115)


def test_parse_optional_date():
    assert parse_optional_date(None) is None
    assert parse_optional_date("") is None
    assert parse_optional_date("garbage") is None
    assert parse_optional_date("2024-02-29") == date(2024, 2, 29)


def test_month_key():
    assert month_key("2024-03-31") == "2024-03"
    assert month_key(date(2023, 12, 1)) == "2023-12"


def test_previous_day_iso():
    assert previous_day_iso(date(2024, 3, 1)) == "2024-02-29"
    assert previous_day_iso(date(2024, 1, 1)) == "2023-12-31"


def test_utc_now_is_naive():
    assert utc_now().tzinfo is None
