"""
Date utilities for Home Account.

Transactions arrive from bank exports and LLM output in several textual
formats. Everything is normalized to ISO dates (YYYY-MM-DD) for storage and to
naive UTC datetimes for cache and session timestamps.
"""

from datetime import datetime, date, timedelta, timezone
from typing import Optional, Union

import pandas as pd


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (the format stored in the database)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_date(date_input: Union[str, datetime, date, pd.Timestamp]) -> date:
    """
    Parse a date from the formats seen in imports and AI output.

    Args:
        date_input: ISO string (YYYY-MM-DD), day-first string (DD/MM/YYYY),
            datetime, date or pandas Timestamp

    Returns:
        date: Parsed calendar date

    Raises:
        ValueError: If the string cannot be parsed
        TypeError: If input type is not supported
    """
    if date_input is None:
        raise ValueError("Date input cannot be None")

    if isinstance(date_input, pd.Timestamp):
        return date_input.date()
    if isinstance(date_input, datetime):
        return date_input.date()
    if isinstance(date_input, date):
        return date_input
    if not isinstance(date_input, str):
        raise TypeError(f"Unsupported date input type: {type(date_input)}")

    date_str = date_input.strip()
    if not date_str:
        raise ValueError("Date string cannot be empty")

    for format_str in ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y", "%d-%m-%Y"):
        try:
            return datetime.strptime(date_str, format_str).date()
        except ValueError:
            continue

    try:
        return pd.to_datetime(date_str, dayfirst=True).date()
    except (ValueError, TypeError):
        raise ValueError(
            f"Unable to parse date string '{date_str}'. Supported formats include: YYYY-MM-DD, DD/MM/YYYY"
        )


def parse_optional_date(date_input) -> Optional[date]:
    """Like parse_date, but returns None for empty or unparseable input."""
    if date_input in (None, ""):
        return None
    try:
        return parse_date(date_input)
    except (ValueError, TypeError):
        return None


def month_key(date_input: Union[str, datetime, date, pd.Timestamp]) -> str:
    """Return the YYYY-MM bucket a date belongs to."""
    return pd.Timestamp(parse_date(date_input)).strftime("%Y-%m")


def previous_day_iso(today: Optional[date] = None) -> str:
    """ISO string for the day before `today` (defaults to the current UTC date)."""
    today = today or utc_now().date()
    return (today - timedelta(days=1)).isoformat()
