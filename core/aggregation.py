"""
Aggregation entry points.

Each query takes an explicit AlmanacConfig, validates its parameters before
any fetch, fans out the per-year requests and returns a plain dict the
presentation layer can index by metric id and year.
"""

from __future__ import annotations

import asyncio
import httpx
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, Awaitable, Dict, List, Optional
from zoneinfo import ZoneInfo

from config import AVERAGE_BUCKETS, AlmanacConfig
from collector.open_meteo_fetcher import (
    DailySeries,
    UpstreamUnavailable,
    fetch_forecast,
    fetch_recent_actuals,
)
from collector.series_cache import get_series_cache
from collector.year_fanout import fetch_archive_cached, fetch_years, successful_series
from core.accumulation import build_accumulation, resolve_start_index
from core.averaging import average_by_month_day, build_bucket_averages, decade_years
from core.calendar_index import key_label, month_day_key
from core.derived_metrics import metric_value, plan_metrics, upstream_metric
from core.envelope import build_envelope, group_by_month_day
from core.models import DateRange
from core.range_resolver import project_onto_keys, range_keys, resolve_range
from core.tri_metric import FETCH_METRICS as TRI_METRIC_FETCH, build_tri_metric_profile
from core.window import assemble_window, spanning_pairs

logger = logging.getLogger("aggregation")


class MissingRequiredParameter(ValueError):
    """A required request field was omitted."""


def _require(**params: Any) -> None:
    for name, value in params.items():
        if value is None or (isinstance(value, (list, tuple, str)) and len(value) == 0):
            raise MissingRequiredParameter(f"Missing required parameter: {name}")


def local_today(config: AlmanacConfig) -> date:
    return datetime.now(ZoneInfo(config.timezone)).date()


@asynccontextmanager
async def _client_scope(config: AlmanacConfig, client: Optional[httpx.AsyncClient]):
    """Reuse the caller's client, or open one for the duration of the query."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=config.request_timeout_seconds) as own_client:
        yield own_client


def _range_fetcher(config, latitude, longitude, metrics, client):
    cache = get_series_cache(config)

    async def _fetch(start: str, end: str) -> DailySeries:
        return await fetch_archive_cached(
            latitude, longitude, start, end, metrics,
            timezone=config.timezone,
            client=client,
            cache=cache,
            timeout=config.request_timeout_seconds,
        )

    return _fetch


async def _best_effort(coro: Awaitable[DailySeries], what: str) -> Optional[DailySeries]:
    """Side fetches (recent, forecast) degrade to nothing on upstream failure."""
    try:
        return await coro
    except (UpstreamUnavailable, httpx.HTTPError) as e:
        logger.warning("Failed to fetch %s: %s", what, e)
        return None


def _values_by_key(series: Optional[DailySeries], metric_id: str) -> Dict[str, float]:
    """MM-DD -> value for one metric, derived formula applied, nulls dropped."""
    values: Dict[str, float] = {}
    if series is None:
        return values
    for iso_date, raw in zip(series.dates, series.column(upstream_metric(metric_id))):
        value = metric_value(metric_id, raw)
        if value is not None:
            values[month_day_key(iso_date)] = value
    return values


# =============================================================================
# Range mode
# =============================================================================

async def _range_bucket_average(
    config: AlmanacConfig,
    bucket: str,
    date_range: DateRange,
    metrics: List[str],
    fetch_range,
    today: date,
) -> dict:
    years = decade_years(bucket, config.history_years(today))
    result = await resolve_range(
        date_range, years, metrics, fetch_range,
        concurrency=config.fetch_concurrency,
        deadline_seconds=config.fanout_deadline_seconds,
    )
    keys = range_keys(date_range)
    block: Dict[str, Any] = {
        "keys": keys,
        "labels": [key_label(k) for k in keys],
        "years": sorted(result.series),
    }
    for metric in metrics:
        groups = group_by_month_day(result.series, metric)
        block[metric] = project_onto_keys(average_by_month_day(groups), keys)
    return block


async def run_range_query(
    config: AlmanacConfig,
    metrics: Optional[List[str]],
    years: Optional[List[int]],
    date_range: Optional[DateRange],
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    averages: Optional[List[str]] = None,
    today: Optional[date] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> dict:
    """
    Per-year chart tables for a (possibly year-wrapping) month/day range,
    plus optional averaging-bucket blocks aligned to the range's MM-DD keys.
    """
    _require(metrics=metrics, years=years, date_range=date_range)
    for bucket in averages or []:
        decade_years(bucket, [])  # unknown bucket names fail before any fetch

    latitude, longitude = config.resolve_location(lat, lon)
    plan = plan_metrics(metrics)
    today = today or local_today(config)

    async with _client_scope(config, client) as http:
        fetch_range = _range_fetcher(config, latitude, longitude, plan.fetch, http)
        main_task = resolve_range(
            date_range, years, plan.requested, fetch_range,
            concurrency=config.fetch_concurrency,
            deadline_seconds=config.fanout_deadline_seconds,
        )
        bucket_tasks = [
            _range_bucket_average(config, bucket, date_range, plan.requested, fetch_range, today)
            for bucket in (averages or [])
        ]
        main, *bucket_blocks = await asyncio.gather(main_task, *bucket_tasks)

    response = {
        "success": True,
        "data": {str(year): table for year, table in main.tables.items()},
        "labels": {str(year): label for year, label in main.labels.items()},
        "unavailable": main.unavailable,
    }
    if averages:
        response["averages"] = dict(zip(averages, bucket_blocks))
    return response


# =============================================================================
# Accumulation mode
# =============================================================================

async def run_accumulation_query(
    config: AlmanacConfig,
    metric: Optional[str],
    years: Optional[List[int]],
    date_range: Optional[DateRange],
    start_date: Optional[str] = None,
    threshold: Optional[float] = None,
    pin_start: bool = False,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> dict:
    """Running total of one metric per year, with threshold crossings."""
    _require(metric=metric, years=years, date_range=date_range)
    latitude, longitude = config.resolve_location(lat, lon)
    plan = plan_metrics([metric])

    async with _client_scope(config, client) as http:
        fetch_range = _range_fetcher(config, latitude, longitude, plan.fetch, http)
        result = await resolve_range(
            date_range, years, plan.requested, fetch_range,
            concurrency=config.fetch_concurrency,
            deadline_seconds=config.fanout_deadline_seconds,
        )

    data = {}
    for year, table in result.tables.items():
        start_index = resolve_start_index(table["dates"], start_date)
        series = build_accumulation(table[metric], start_index, threshold, pin_start)
        entry = {"dates": table["dates"], "labels": table["labels"], "values": table[metric]}
        entry.update(series.to_dict())
        data[str(year)] = entry

    return {
        "success": True,
        "data": data,
        "labels": {str(year): label for year, label in result.labels.items()},
        "unavailable": result.unavailable,
    }


# =============================================================================
# Envelope mode
# =============================================================================

async def run_envelope_query(
    config: AlmanacConfig,
    metric: Optional[str],
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    today: Optional[date] = None,
    buckets: Optional[List[str]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> dict:
    """
    Day-of-year envelope of one metric over the configured history, with
    per-year overlays, bucket averages, recent actuals, forecast and the
    assembled rolling window.
    """
    _require(metric=metric)
    latitude, longitude = config.resolve_location(lat, lon)
    today = today or local_today(config)
    buckets = list(buckets or AVERAGE_BUCKETS)
    fetch_metric = upstream_metric(metric)
    years = config.history_years(today)

    async with _client_scope(config, client) as http:
        fetch_range = _range_fetcher(config, latitude, longitude, [fetch_metric], http)

        async def _fetch_year(year: int) -> DailySeries:
            return await fetch_range(f"{year}-01-01", f"{year}-12-31")

        envelope, recent, forecast = await asyncio.gather(
            build_envelope(
                metric, years, _fetch_year,
                concurrency=config.fetch_concurrency,
                deadline_seconds=config.fanout_deadline_seconds,
                min_samples=config.min_samples,
            ),
            _best_effort(
                fetch_recent_actuals(
                    latitude, longitude, [fetch_metric], today=today,
                    months=config.recent_months, timezone=config.timezone, client=http,
                ),
                "recent data",
            ),
            _best_effort(
                fetch_forecast(
                    latitude, longitude, [fetch_metric], forecast_days=config.forecast_days,
                    timezone=config.timezone, client=http,
                ),
                "forecast",
            ),
        )

    recent_data = _values_by_key(recent, metric)
    forecast_data = _values_by_key(forecast, metric)
    averages = build_bucket_averages(envelope.groups, buckets, envelope.overlay_years)
    window = assemble_window(
        today, envelope.statistics, envelope.overlay,
        averages=averages, recent=recent_data, forecast=forecast_data,
    )

    return {
        "success": True,
        "metric": metric,
        "data": envelope.statistics_dict(),
        "overlayData": envelope.overlay_dict(),
        "historicalYears": envelope.requested_years,
        "overlayYears": envelope.overlay_years,
        "failedYears": envelope.failed_years,
        "recentData": recent_data,
        "forecastData": forecast_data,
        "averagesData": averages,
        "spanningPairs": [
            {"label": p.label, "year1": p.year1, "year2": p.year2}
            for p in spanning_pairs(envelope.overlay_years)
        ],
        "window": window.to_dict(),
    }


# =============================================================================
# Tri-metric mode
# =============================================================================

async def run_tri_metric_query(
    config: AlmanacConfig,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    today: Optional[date] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> dict:
    """Temperature / ET0 / DLI profile per day over the configured history."""
    latitude, longitude = config.resolve_location(lat, lon)
    today = today or local_today(config)
    years = config.history_years(today)

    async with _client_scope(config, client) as http:
        fetch_range = _range_fetcher(config, latitude, longitude, TRI_METRIC_FETCH, http)

        async def _fetch_year(year: int) -> DailySeries:
            return await fetch_range(f"{year}-01-01", f"{year}-12-31")

        results, recent, forecast = await asyncio.gather(
            fetch_years(
                years, _fetch_year,
                concurrency=config.fetch_concurrency,
                deadline_seconds=config.fanout_deadline_seconds,
            ),
            _best_effort(
                fetch_recent_actuals(
                    latitude, longitude, TRI_METRIC_FETCH, today=today,
                    months=config.recent_months, timezone=config.timezone, client=http,
                ),
                "recent tri-metric data",
            ),
            _best_effort(
                fetch_forecast(
                    latitude, longitude, TRI_METRIC_FETCH, forecast_days=config.forecast_days,
                    timezone=config.timezone, client=http,
                ),
                "tri-metric forecast",
            ),
        )

    profile = build_tri_metric_profile(
        successful_series(results),
        recent=recent,
        forecast=forecast,
        average_years=config.tri_metric_average_years,
        history_years=years,
    )
    response = {"success": True}
    response.update(profile.to_dict())
    return response
