from pathlib import Path
import sys

import pytest


sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


from core.calendar_index import (
    LEAP_YEAR_DAYS,
    days_in_month,
    display_label,
    key_label,
    keys_between,
    leap_calendar_keys,
    month_day_key,
)


def test_leap_calendar_has_366_keys_including_feb_29():
    keys = leap_calendar_keys()

    assert LEAP_YEAR_DAYS == 366
    assert len(keys) == 366
    assert keys[0] == "01-01"
    assert keys[-1] == "12-31"
    assert "02-29" in keys
    assert len(set(keys)) == 366


def test_leap_calendar_rotates_to_start_month():
    keys = leap_calendar_keys(10)

    assert keys[0] == "10-01"
    assert keys[-1] == "09-30"
    assert keys.index("01-01") == 31 + 30 + 31


def test_february_is_always_29_days():
    assert days_in_month(2) == 29
    with pytest.raises(ValueError):
        days_in_month(13)


def test_keys_between_wraps_through_new_year():
    keys = keys_between(10, 1, 1, 31)

    assert keys[0] == "10-01"
    assert keys[-1] == "01-31"
    assert keys.index("12-31") == 91
    assert len(keys) == 92 + 31


def test_keys_between_same_year():
    assert keys_between(3, 30, 4, 2) == ["03-30", "03-31", "04-01", "04-02"]


def test_labels():
    assert month_day_key("2024-02-29") == "02-29"
    assert display_label("2023-10-01") == "Oct 1"
    assert key_label("12-25") == "Dec 25"
