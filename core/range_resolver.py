"""
Cross-Year Range Resolver

A month/day range such as Oct 1 -> Jan 31 crosses the year boundary. For a
reference year Y it is fetched as [Y-10-01, Y-12-31] followed by
[(Y+1)-01-01, (Y+1)-01-31] and stitched into a single series labelled by
its start year ("23/24").
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from collector.open_meteo_fetcher import DailySeries
from collector.year_fanout import fetch_years
from core.calendar_index import display_label, keys_between
from core.derived_metrics import resolve_columns
from core.models import DateRange

logger = logging.getLogger("range_resolver")

# (start_iso, end_iso) -> series
RangeFetcher = Callable[[str, str], Awaitable[DailySeries]]


def _iso(year: int, month: int, day: int, start: bool = False) -> str:
    # Feb 29 in a non-leap year: a start bound moves on to Mar 1, an end bound back to Feb 28.
    month, day = int(month), int(day)
    last = calendar.monthrange(year, month)[1]
    if day > last and start:
        month, day = month + 1, 1
    return f"{year}-{month:02d}-{min(day, last):02d}"


def plan_fetches(date_range: DateRange, year: int) -> List[Tuple[str, str]]:
    """
    Ordered (start, end) ISO pairs needed to cover the range for `year`.

    A part that is empty in this year (Feb 29 alone in a non-leap year) is left out.
    """
    if not date_range.wraps:
        parts = [(
            _iso(year, date_range.start_month, date_range.start_day, start=True),
            _iso(year, date_range.end_month, date_range.end_day),
        )]
    else:
        next_year = year + 1
        parts = [
            (_iso(year, date_range.start_month, date_range.start_day, start=True), f"{year}-12-31"),
            (f"{next_year}-01-01", _iso(next_year, date_range.end_month, date_range.end_day)),
        ]
    return [(start, end) for start, end in parts if start <= end]


def range_label(date_range: DateRange, year: int) -> str:
    if date_range.wraps:
        return f"{year % 100:02d}/{(year + 1) % 100:02d}"
    return str(year)


def range_keys(date_range: DateRange) -> List[str]:
    """MM-DD keys covered by the range on the leap calendar."""
    return keys_between(date_range.start_month, date_range.start_day, date_range.end_month, date_range.end_day)


async def fetch_range_series(date_range: DateRange, year: int, fetch_range: RangeFetcher) -> DailySeries:
    """
    Fetch every part of the range and concatenate them in calendar order.

    Any failing part propagates, so a year is either complete or missing.
    """
    combined: Optional[DailySeries] = None
    for start, end in plan_fetches(date_range, year):
        part = await fetch_range(start, end)
        combined = part if combined is None else combined.extend(part)
    return combined if combined is not None else DailySeries()


def build_range_table(series: DailySeries, metrics: List[str]) -> dict:
    """Per-year chart table: ISO dates, display labels and one column per metric."""
    table = {
        "dates": list(series.dates),
        "labels": [display_label(d) for d in series.dates],
    }
    table.update(resolve_columns(series, metrics))
    return table


@dataclass
class RangeResult:
    tables: Dict[int, dict] = field(default_factory=dict)
    labels: Dict[int, str] = field(default_factory=dict)
    series: Dict[int, DailySeries] = field(default_factory=dict)
    unavailable: List[int] = field(default_factory=list)


async def resolve_range(
    date_range: DateRange,
    years: Iterable[int],
    metrics: List[str],
    fetch_range: RangeFetcher,
    concurrency: int = 8,
    deadline_seconds: Optional[float] = None,
) -> RangeResult:
    """Fetch the range for every year; failed years are listed, not fatal."""

    async def _fetch_year(year: int) -> DailySeries:
        return await fetch_range_series(date_range, year, fetch_range)

    results = await fetch_years(years, _fetch_year, concurrency=concurrency, deadline_seconds=deadline_seconds)
    outcome = RangeResult()
    for year, result in results.items():
        if not result.ok:
            outcome.unavailable.append(year)
            continue
        outcome.series[year] = result.series
        outcome.tables[year] = build_range_table(result.series, metrics)
        outcome.labels[year] = range_label(date_range, year)
    if outcome.unavailable:
        logger.info("Range %s: %d year(s) unavailable %s", date_range, len(outcome.unavailable), outcome.unavailable)
    return outcome


def project_onto_keys(values_by_key: Dict[str, float], keys: List[str]) -> List[Optional[float]]:
    return [values_by_key.get(key) for key in keys]
