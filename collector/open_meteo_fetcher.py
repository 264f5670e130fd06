"""
Almanac Weather Lab - Open-Meteo Fetcher
Fetches daily series from the Open-Meteo archive and forecast APIs.
"""

import httpx
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterator, List, Optional

from config import (
    FORECAST_METRIC_MAP,
    MAX_FORECAST_DAYS,
    OPEN_METEO_ARCHIVE_URL,
    OPEN_METEO_FORECAST_URL,
)
from core.models import DailySample

logger = logging.getLogger("open_meteo_fetcher")

DEFAULT_TIMEOUT_SECONDS = 30.0


class UpstreamUnavailable(Exception):
    """The upstream service returned no usable data for a request."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


@dataclass
class DailySeries:
    """Parsed `daily` block: ISO dates plus one value array per metric."""
    dates: List[str] = field(default_factory=list)
    values: Dict[str, List[Optional[float]]] = field(default_factory=dict)

    def column(self, metric_id: str) -> List[Optional[float]]:
        column = self.values.get(metric_id)
        if column is None:
            return [None] * len(self.dates)
        return column

    def samples(self, metric_id: str) -> Iterator[DailySample]:
        for iso_date, value in zip(self.dates, self.column(metric_id)):
            yield DailySample(iso_date=iso_date, metric_id=metric_id, value=value)

    def extend(self, other: "DailySeries") -> "DailySeries":
        """Return a new series with `other` appended after this one."""
        metrics = list(dict.fromkeys(list(self.values) + list(other.values)))
        return DailySeries(
            dates=self.dates + other.dates,
            values={m: self.column(m) + other.column(m) for m in metrics},
        )


def _to_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_daily_payload(payload: dict, metrics: List[str]) -> DailySeries:
    """
    Parse an Open-Meteo response into a DailySeries.

    Raises UpstreamUnavailable when the payload has no `daily.time` array.
    """
    daily = payload.get("daily") if isinstance(payload, dict) else None
    if not isinstance(daily, dict) or not isinstance(daily.get("time"), list):
        raise UpstreamUnavailable("Malformed upstream payload: missing daily.time")

    dates = [str(t) for t in daily["time"]]
    values: Dict[str, List[Optional[float]]] = {}
    for metric in metrics:
        raw = daily.get(metric)
        if not isinstance(raw, list):
            values[metric] = [None] * len(dates)
            continue
        column = [_to_float(v) for v in raw[:len(dates)]]
        column.extend([None] * (len(dates) - len(column)))
        values[metric] = column
    return DailySeries(dates=dates, values=values)


async def _get_daily(
    url: str,
    params: dict,
    metrics: List[str],
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> DailySeries:
    if client is None:
        async with httpx.AsyncClient(timeout=timeout) as own_client:
            response = await own_client.get(url, params=params)
    else:
        response = await client.get(url, params=params)

    if response.status_code != 200:
        logger.debug("GET %s %s -> %s", url, params.get("start_date", ""), response.status_code)
        raise UpstreamUnavailable(
            f"API returned {response.status_code}",
            status_code=response.status_code,
            url=url,
        )
    try:
        payload = response.json()
    except ValueError as e:
        raise UpstreamUnavailable(f"Invalid JSON from upstream: {e}", status_code=response.status_code, url=url)
    return parse_daily_payload(payload, metrics)


def build_archive_params(
    latitude: float,
    longitude: float,
    start_date: str,
    end_date: str,
    metrics: List[str],
    timezone: str = "Europe/London",
) -> dict:
    return {
        "latitude": latitude,
        "longitude": longitude,
        "start_date": start_date,
        "end_date": end_date,
        "daily": ",".join(metrics),
        "timezone": timezone,
    }


async def fetch_archive_range(
    latitude: float,
    longitude: float,
    start_date: str,
    end_date: str,
    metrics: List[str],
    timezone: str = "Europe/London",
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> DailySeries:
    """
    Fetch daily archive values for [start_date, end_date].

    Raises:
        UpstreamUnavailable: non-success status or malformed payload.
    """
    params = build_archive_params(latitude, longitude, start_date, end_date, metrics, timezone)
    return await _get_daily(OPEN_METEO_ARCHIVE_URL, params, metrics, client=client, timeout=timeout)


def forecast_request_metrics(metrics: List[str]) -> List[str]:
    """Map archive metric ids to the ids the forecast endpoint serves."""
    mapped: List[str] = []
    for metric in metrics:
        for upstream in FORECAST_METRIC_MAP.get(metric, [metric]):
            if upstream not in mapped:
                mapped.append(upstream)
    return mapped


def _rebuild_forecast_metrics(series: DailySeries, metrics: List[str]) -> DailySeries:
    values: Dict[str, List[Optional[float]]] = {}
    for metric in metrics:
        sources = FORECAST_METRIC_MAP.get(metric)
        if not sources:
            values[metric] = series.column(metric)
            continue
        columns = [series.column(src) for src in sources]
        rebuilt: List[Optional[float]] = []
        for row in zip(*columns):
            if any(v is None for v in row):
                rebuilt.append(None)
            else:
                rebuilt.append(sum(row) / len(row))
        values[metric] = rebuilt
    return DailySeries(dates=list(series.dates), values=values)


async def fetch_forecast(
    latitude: float,
    longitude: float,
    metrics: List[str],
    forecast_days: int = MAX_FORECAST_DAYS,
    timezone: str = "Europe/London",
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> DailySeries:
    """
    Fetch the daily forecast, keyed by archive metric ids.

    Mean temperature is not served by the forecast endpoint, so it is
    rebuilt as the mean of the daily max and min.
    """
    upstream_metrics = forecast_request_metrics(metrics)
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "daily": ",".join(upstream_metrics),
        "timezone": timezone,
        "forecast_days": max(1, min(MAX_FORECAST_DAYS, int(forecast_days))),
    }
    raw = await _get_daily(OPEN_METEO_FORECAST_URL, params, upstream_metrics, client=client, timeout=timeout)
    return _rebuild_forecast_metrics(raw, metrics)


def months_before(today: date, months: int) -> date:
    """Same day-of-month `months` earlier, clamped to the month's end."""
    month_index = today.year * 12 + (today.month - 1) - int(months)
    year, month = divmod(month_index, 12)
    month += 1
    day = today.day
    while day > 28:
        try:
            return date(year, month, day)
        except ValueError:
            day -= 1
    return date(year, month, day)


async def fetch_recent_actuals(
    latitude: float,
    longitude: float,
    metrics: List[str],
    today: Optional[date] = None,
    months: int = 6,
    timezone: str = "Europe/London",
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> DailySeries:
    """Fetch the last `months` months of archive data up to today."""
    today = today or date.today()
    start = months_before(today, months)
    return await fetch_archive_range(
        latitude, longitude, start.isoformat(), today.isoformat(), metrics,
        timezone=timezone, client=client, timeout=timeout,
    )
