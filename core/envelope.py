"""
Historical Envelope Builder

Folds N years of daily values onto the MM-DD axis and summarises each day
with min / p25 / p75 / max. Days backed by fewer than three years are left
out of the result entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from collector.open_meteo_fetcher import DailySeries
from collector.year_fanout import failed_years, fetch_years, successful_series
from core.derived_metrics import metric_value, upstream_metric
from core.models import MIN_ENVELOPE_SAMPLES, DayStatistics, YearlySample, YearlySampleGroup

logger = logging.getLogger("envelope")


def group_by_month_day(
    year_series: Dict[int, DailySeries],
    metric_id: str,
    upstream_metric_id: Optional[str] = None,
) -> YearlySampleGroup:
    """
    Group every non-null sample of every year by MM-DD.

    `upstream_metric_id` overrides the fetched column; derived metrics
    read their dependency and apply their formula to each value.
    """
    source = upstream_metric_id or upstream_metric(metric_id)
    groups: YearlySampleGroup = {}
    for year, series in year_series.items():
        for sample in series.samples(source):
            value = metric_value(metric_id, sample.value)
            if value is None:
                continue
            groups.setdefault(sample.month_day, []).append(YearlySample(year=year, value=value))
    return groups


def build_statistics(groups: YearlySampleGroup, min_samples: int = MIN_ENVELOPE_SAMPLES) -> Dict[str, DayStatistics]:
    threshold = max(MIN_ENVELOPE_SAMPLES, int(min_samples))
    statistics: Dict[str, DayStatistics] = {}
    for key in sorted(groups):
        samples = groups[key]
        if len(samples) < threshold:
            continue
        statistics[key] = DayStatistics.from_samples(samples)
    return statistics


def build_overlay(groups: YearlySampleGroup) -> Dict[int, Dict[str, float]]:
    """Re-index the grouped samples by year: year -> {MM-DD: value}."""
    overlay: Dict[int, Dict[str, float]] = {}
    for key in sorted(groups):
        for sample in groups[key]:
            overlay.setdefault(sample.year, {})[key] = sample.value
    return dict(sorted(overlay.items()))


@dataclass
class HistoricalEnvelope:
    metric_id: str
    statistics: Dict[str, DayStatistics] = field(default_factory=dict)
    groups: YearlySampleGroup = field(default_factory=dict)
    overlay: Dict[int, Dict[str, float]] = field(default_factory=dict)
    requested_years: List[int] = field(default_factory=list)
    failed_years: List[int] = field(default_factory=list)

    @property
    def overlay_years(self) -> List[int]:
        return sorted(self.overlay)

    def statistics_dict(self) -> Dict[str, dict]:
        return {key: stats.to_dict() for key, stats in self.statistics.items()}

    def overlay_dict(self) -> Dict[str, Dict[str, float]]:
        return {str(year): values for year, values in self.overlay.items()}


def assemble_envelope(
    metric_id: str,
    year_series: Dict[int, DailySeries],
    upstream_metric_id: Optional[str] = None,
    requested_years: Optional[Iterable[int]] = None,
    failed: Optional[Iterable[int]] = None,
    min_samples: int = MIN_ENVELOPE_SAMPLES,
) -> HistoricalEnvelope:
    groups = group_by_month_day(year_series, metric_id, upstream_metric_id)
    return HistoricalEnvelope(
        metric_id=metric_id,
        statistics=build_statistics(groups, min_samples),
        groups=groups,
        overlay=build_overlay(groups),
        requested_years=sorted(requested_years if requested_years is not None else year_series),
        failed_years=sorted(failed or []),
    )


async def build_envelope(
    metric_id: str,
    years: Iterable[int],
    fetch_year: Callable[[int], Awaitable[DailySeries]],
    upstream_metric_id: Optional[str] = None,
    concurrency: int = 8,
    deadline_seconds: Optional[float] = None,
    min_samples: int = MIN_ENVELOPE_SAMPLES,
) -> HistoricalEnvelope:
    """
    Fetch every year and build the envelope from whichever years succeeded.
    """
    years = list(years)
    results = await fetch_years(years, fetch_year, concurrency=concurrency, deadline_seconds=deadline_seconds)
    envelope = assemble_envelope(
        metric_id,
        successful_series(results),
        upstream_metric_id=upstream_metric_id,
        requested_years=years,
        failed=failed_years(results),
        min_samples=min_samples,
    )
    logger.info(
        "Envelope %s: %d days from %d/%d years",
        metric_id, len(envelope.statistics), len(envelope.overlay_years), len(years),
    )
    return envelope
