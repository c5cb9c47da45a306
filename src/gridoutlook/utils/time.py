"""
Utilities: Date helpers for daily and monthly series.

All readings are keyed by calendar date (no time of day, no timezone). The
helpers here normalize incoming values to ``datetime.date`` and implement the
month arithmetic used by the projections: a projected month is always the
first day of a calendar month.

Usage:
    >>> from gridoutlook.utils.time import add_months
    >>> add_months(date(2026, 1, 31), 1)
    datetime.date(2026, 2, 1)
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd


def to_date(value: Any) -> date:
    """
    Coerce a date-like value (date, datetime, Timestamp, ISO string) to a date.

    Raises:
        ValueError: if the value is empty or cannot be parsed.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError("empty date value")
    ts = pd.Timestamp(value)
    if pd.isna(ts):
        raise ValueError(f"invalid date value: {value!r}")
    return ts.date()


def first_of_month(value: date) -> date:
    return value.replace(day=1)


def add_months(value: date, months: int) -> date:
    """First day of the month ``months`` after the month of ``value``."""
    shifted = pd.Timestamp(first_of_month(value)) + pd.DateOffset(months=months)
    return shifted.date()


def window_start(as_of: date, days: int) -> date:
    return as_of - timedelta(days=days)


def is_next_day(previous: date, current: date) -> bool:
    return (current - previous).days == 1
