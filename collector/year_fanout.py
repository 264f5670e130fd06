"""
Almanac Weather Lab - Per-Year Fan-Out
Issues one upstream request per historical year with bounded concurrency
and folds the results back together, keeping failures per year.
"""

import asyncio
import httpx
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from collector.open_meteo_fetcher import DailySeries, UpstreamUnavailable, fetch_archive_range
from collector.series_cache import YearSeriesCache, make_cache_key

logger = logging.getLogger("year_fanout")

CANCELLED = "cancelled"


@dataclass
class YearFetchResult:
    """Outcome of one year's fetch: a series or the reason it is missing."""
    year: int
    series: Optional[DailySeries] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.series is not None and self.error is None


def successful_series(results: Dict[int, YearFetchResult]) -> Dict[int, DailySeries]:
    return {year: r.series for year, r in sorted(results.items()) if r.ok}


def failed_years(results: Dict[int, YearFetchResult]) -> List[int]:
    return sorted(year for year, r in results.items() if not r.ok)


async def fetch_years(
    years: Iterable[int],
    fetch_one: Callable[[int], Awaitable[DailySeries]],
    concurrency: int = 8,
    deadline_seconds: Optional[float] = None,
) -> Dict[int, YearFetchResult]:
    """
    Run `fetch_one(year)` for every year, at most `concurrency` at a time.

    A failing year never aborts the batch. When `deadline_seconds` elapses,
    years still in flight are cancelled and reported like failed fetches.
    """
    years = list(dict.fromkeys(int(y) for y in years))
    if not years:
        return {}

    semaphore = asyncio.Semaphore(max(1, int(concurrency)))

    async def _one(year: int) -> YearFetchResult:
        async with semaphore:
            try:
                series = await fetch_one(year)
            except UpstreamUnavailable as e:
                logger.warning("Failed to fetch %s: %s", year, e)
                return YearFetchResult(year=year, error=str(e))
            except httpx.HTTPError as e:
                logger.warning("Network error fetching %s: %s", year, e)
                return YearFetchResult(year=year, error=f"{type(e).__name__}: {e}")
            return YearFetchResult(year=year, series=series)

    tasks = {asyncio.ensure_future(_one(year)): year for year in years}
    done, pending = await asyncio.wait(tasks.keys(), timeout=deadline_seconds)

    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
        logger.warning("Fan-out deadline reached, cancelled %d year(s)", len(pending))

    results: Dict[int, YearFetchResult] = {}
    for task, year in tasks.items():
        if task in pending:
            results[year] = YearFetchResult(year=year, error=CANCELLED)
        else:
            # Unexpected exceptions propagate to the request boundary.
            results[year] = task.result()

    ok = sum(1 for r in results.values() if r.ok)
    logger.info("Fetched %d/%d years", ok, len(years))
    return dict(sorted(results.items()))


async def fetch_archive_cached(
    latitude: float,
    longitude: float,
    start_date: str,
    end_date: str,
    metrics: List[str],
    timezone: str,
    client: Optional[httpx.AsyncClient],
    cache: Optional[YearSeriesCache] = None,
    timeout: float = 30.0,
) -> DailySeries:
    """Archive fetch that consults the series cache first."""
    key = make_cache_key(latitude, longitude, metrics, start_date, end_date)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached
    series = await fetch_archive_range(
        latitude, longitude, start_date, end_date, metrics,
        timezone=timezone, client=client, timeout=timeout,
    )
    if cache is not None:
        cache.put(key, series)
    return series
