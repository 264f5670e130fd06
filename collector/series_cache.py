"""
Per-year series cache.

Historical years never change, so their raw series can be reused across
requests. Ranges that reach into the current year expire much sooner.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from datetime import date
from threading import RLock
from typing import Callable, List, Optional, Tuple

from collector.open_meteo_fetcher import DailySeries

logger = logging.getLogger("series_cache")

CacheKey = Tuple[float, float, Tuple[str, ...], str, str]


def make_cache_key(latitude: float, longitude: float, metrics: List[str], start_date: str, end_date: str) -> CacheKey:
    return (round(float(latitude), 4), round(float(longitude), 4), tuple(sorted(metrics)), start_date, end_date)


class YearSeriesCache:
    """LRU of fetched DailySeries with per-entry expiry."""

    def __init__(
        self,
        max_entries: int = 512,
        ttl_seconds: float = 7 * 24 * 3600,
        recent_ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = date.today,
    ):
        self._max_entries = max(0, int(max_entries))
        self._ttl_seconds = float(ttl_seconds)
        self._recent_ttl_seconds = float(recent_ttl_seconds)
        self._clock = clock
        self._today = today
        self._entries: "OrderedDict[CacheKey, Tuple[float, DailySeries]]" = OrderedDict()
        self._lock = RLock()

    @property
    def settings(self) -> Tuple[int, float, float]:
        return (self._max_entries, self._ttl_seconds, self._recent_ttl_seconds)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def ttl_for(self, key: CacheKey) -> float:
        """Ranges ending in the current year (or later) use the short TTL."""
        end_date = key[4]
        try:
            end_year = int(end_date[:4])
        except (TypeError, ValueError):
            return self._recent_ttl_seconds
        if end_year >= self._today().year:
            return self._recent_ttl_seconds
        return self._ttl_seconds

    def get(self, key: CacheKey) -> Optional[DailySeries]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, series = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            logger.debug("Series cache hit for %s", key)
            return series

    def put(self, key: CacheKey, series: DailySeries) -> None:
        if self._max_entries <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_for(key), series)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


_series_cache: Optional[YearSeriesCache] = None


def get_series_cache(config) -> Optional[YearSeriesCache]:
    """
    Process-wide cache built from the config, or None when disabled.

    A config with different size or TTL settings replaces the shared cache.
    """
    global _series_cache
    if not config.cache_enabled:
        return None
    settings = (
        max(0, int(config.cache_max_entries)),
        float(config.cache_ttl_seconds),
        float(config.cache_recent_ttl_seconds),
    )
    if _series_cache is None or _series_cache.settings != settings:
        if _series_cache is not None:
            logger.info("Rebuilding series cache with settings %s", settings)
        _series_cache = YearSeriesCache(
            max_entries=config.cache_max_entries,
            ttl_seconds=config.cache_ttl_seconds,
            recent_ttl_seconds=config.cache_recent_ttl_seconds,
        )
    return _series_cache
