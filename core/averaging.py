"""
Per-day means over a year set (all years, or one decade bucket).

Works on the samples already grouped by the envelope builder, so no extra
fetch is needed. Each bucket is filtered and averaged independently.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from config import ALL_TIME_BUCKET, DECADE_BUCKETS
from core.models import YearlySampleGroup
from core.percentile import mean


def decade_years(bucket: str, available_years: Iterable[int]) -> List[int]:
    """
    Years of a bucket that are actually available.

    The current decade is naturally truncated to the years seen so far.
    """
    available = sorted(set(int(y) for y in available_years))
    if bucket == ALL_TIME_BUCKET:
        return available
    if bucket not in DECADE_BUCKETS:
        raise ValueError(f"Unknown averaging bucket: {bucket}")
    start = DECADE_BUCKETS[bucket]
    return [y for y in available if start <= y < start + 10]


def trailing_years(available_years: Iterable[int], count: int) -> List[int]:
    available = sorted(set(int(y) for y in available_years))
    if count <= 0:
        return []
    return available[-count:]


def average_by_month_day(groups: YearlySampleGroup, years: Optional[Iterable[int]] = None) -> Dict[str, float]:
    """Mean per MM-DD over samples from `years` (all samples when None)."""
    allowed = None if years is None else set(years)
    averages: Dict[str, float] = {}
    for key in sorted(groups):
        values = [s.value for s in groups[key] if allowed is None or s.year in allowed]
        if values:
            averages[key] = mean(values)
    return averages


def build_bucket_averages(
    groups: YearlySampleGroup,
    buckets: Iterable[str],
    available_years: Iterable[int],
) -> Dict[str, Dict[str, float]]:
    available = list(available_years)
    averages: Dict[str, Dict[str, float]] = {}
    for bucket in buckets:
        averages[bucket] = average_by_month_day(groups, decade_years(bucket, available))
    return averages
