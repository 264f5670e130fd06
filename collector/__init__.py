"""
Almanac Weather Lab - Collector Module
Daily series collection from the Open-Meteo archive and forecast APIs.
"""

from .open_meteo_fetcher import (
    DailySeries,
    UpstreamUnavailable,
    fetch_archive_range,
    fetch_forecast,
    fetch_recent_actuals,
)
from .series_cache import YearSeriesCache, get_series_cache
from .year_fanout import YearFetchResult, fetch_archive_cached, fetch_years

__all__ = [
    "DailySeries", "UpstreamUnavailable",
    "fetch_archive_range", "fetch_forecast", "fetch_recent_actuals",
    "YearSeriesCache", "get_series_cache",
    "YearFetchResult", "fetch_archive_cached", "fetch_years",
]
