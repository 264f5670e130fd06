"""
Calendar alignment helpers.

Every year is projected onto a leap-length calendar so that 02-29 samples
from leap years line up; non-leap years simply contribute nothing to that key.
"""

from __future__ import annotations

from datetime import date
from typing import List

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

_LEAP_MONTH_LENGTHS = [31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]

LEAP_YEAR_DAYS = sum(_LEAP_MONTH_LENGTHS)


def _check_month(month: int) -> int:
    month = int(month)
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    return month


def month_day_key(iso_date: str) -> str:
    """'2024-02-29' -> '02-29'."""
    return iso_date[5:10]


def make_key(month: int, day: int) -> str:
    return f"{int(month):02d}-{int(day):02d}"


def days_in_month(month: int) -> int:
    """Days in a month, February always 29."""
    return _LEAP_MONTH_LENGTHS[_check_month(month) - 1]


def leap_calendar_keys(start_month: int = 1) -> List[str]:
    """All 366 MM-DD keys starting at the first day of `start_month`, wrapping."""
    start = _check_month(start_month)
    keys: List[str] = []
    for offset in range(12):
        month = (start - 1 + offset) % 12 + 1
        keys.extend(make_key(month, day) for day in range(1, days_in_month(month) + 1))
    return keys


def keys_between(start_month: int, start_day: int, end_month: int, end_day: int) -> List[str]:
    """Ordered MM-DD keys from start to end inclusive, wrapping through Dec 31 if needed."""
    keys = leap_calendar_keys(start_month)
    first = keys.index(make_key(start_month, start_day))
    last = keys.index(make_key(end_month, end_day))
    if last < first:
        # Same start month with an earlier end day: the range spans a full year.
        return keys[first:] + keys[:last + 1]
    return keys[first:last + 1]


def display_label(iso_date: str) -> str:
    """'2023-10-01' -> 'Oct 1'."""
    parsed = date.fromisoformat(iso_date)
    return f"{MONTH_ABBREVIATIONS[parsed.month - 1]} {parsed.day}"


def key_label(key: str) -> str:
    """'10-01' -> 'Oct 1'."""
    month, day = key.split("-")
    return f"{MONTH_ABBREVIATIONS[int(month) - 1]} {int(day)}"
