import asyncio
from datetime import date, timedelta
from pathlib import Path
import sys

import pytest


sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


from collector.open_meteo_fetcher import DailySeries, UpstreamUnavailable
from core.models import DateRange
from core.range_resolver import (
    fetch_range_series,
    plan_fetches,
    range_keys,
    range_label,
    resolve_range,
)


METRIC = "temperature_2m_mean"


def _days(start: str, end: str):
    current = date.fromisoformat(start)
    last = date.fromisoformat(end)
    while current <= last:
        yield current.isoformat()
        current += timedelta(days=1)


class _RecordingFetcher:
    def __init__(self, fail_years=()):
        self.calls = []
        self.fail_years = set(fail_years)

    async def __call__(self, start: str, end: str) -> DailySeries:
        self.calls.append((start, end))
        if int(start[:4]) in self.fail_years:
            raise UpstreamUnavailable("API returned 503", status_code=503)
        dates = list(_days(start, end))
        return DailySeries(dates=dates, values={METRIC: [float(i) for i in range(len(dates))]})


def test_plan_fetches_splits_wrapping_range():
    date_range = DateRange(10, 1, 1, 31)

    assert date_range.wraps
    assert plan_fetches(date_range, 2022) == [
        ("2022-10-01", "2022-12-31"),
        ("2023-01-01", "2023-01-31"),
    ]
    assert range_label(date_range, 2022) == "22/23"


def test_plan_fetches_single_part_for_same_year_range():
    date_range = DateRange(3, 1, 5, 31)

    assert not date_range.wraps
    assert plan_fetches(date_range, 2021) == [("2021-03-01", "2021-05-31")]
    assert range_label(date_range, 2021) == "2021"


def test_feb_29_end_falls_back_in_non_leap_year():
    date_range = DateRange(1, 1, 2, 29)

    assert plan_fetches(date_range, 2023) == [("2023-01-01", "2023-02-28")]
    assert plan_fetches(date_range, 2024) == [("2024-01-01", "2024-02-29")]


def test_feb_29_start_moves_to_march_in_non_leap_year():
    assert plan_fetches(DateRange(2, 29, 3, 2), 2023) == [("2023-03-01", "2023-03-02")]
    assert plan_fetches(DateRange(2, 29, 3, 2), 2024) == [("2024-02-29", "2024-03-02")]
    assert plan_fetches(DateRange(2, 29, 2, 29), 2023) == []
    assert plan_fetches(DateRange(12, 1, 2, 29), 2022) == [
        ("2022-12-01", "2022-12-31"),
        ("2023-01-01", "2023-02-28"),
    ]


def test_cross_year_series_is_stitched_in_calendar_order():
    fetcher = _RecordingFetcher()

    series = asyncio.run(fetch_range_series(DateRange(10, 1, 1, 31), 2022, fetcher))

    assert fetcher.calls == [("2022-10-01", "2022-12-31"), ("2023-01-01", "2023-01-31")]
    assert series.dates[0] == "2022-10-01"
    assert series.dates[91] == "2022-12-31"
    assert series.dates[92] == "2023-01-01"
    assert len(series.dates) == 92 + 31


def test_resolve_range_builds_labelled_tables():
    fetcher = _RecordingFetcher()
    date_range = DateRange(10, 1, 1, 31)

    result = asyncio.run(resolve_range(date_range, [2022], [METRIC, "gdd0"], fetcher))
    table = result.tables[2022]

    first_part = [label for label, iso in zip(table["labels"], table["dates"]) if iso.startswith("2022")]
    assert len(first_part) == 92
    assert table["labels"][0] == "Oct 1"
    assert table["labels"][-1] == "Jan 31"
    assert len(table["labels"]) == len(table[METRIC]) == len(table["gdd0"])
    assert result.labels == {2022: "22/23"}
    assert result.unavailable == []


def test_failed_sub_range_marks_year_unavailable():
    # 2023 fails, which is the second half of the 2022 range and the first of 2023.
    fetcher = _RecordingFetcher(fail_years={2023})

    result = asyncio.run(resolve_range(DateRange(10, 1, 1, 31), [2021, 2022, 2023], [METRIC], fetcher))

    assert sorted(result.tables) == [2021]
    assert result.unavailable == [2022, 2023]


def test_range_keys_cover_leap_calendar():
    keys = range_keys(DateRange(2, 27, 3, 1))

    assert keys == ["02-27", "02-28", "02-29", "03-01"]


def test_invalid_month_rejected():
    with pytest.raises(ValueError):
        DateRange(13, 1, 1, 1)


def test_impossible_calendar_day_rejected():
    with pytest.raises(ValueError, match="04-31"):
        DateRange(4, 31, 5, 2)
    with pytest.raises(ValueError):
        DateRange(1, 1, 2, 30)
    assert DateRange(2, 29, 3, 1).start_day == 29
