"""
Climate-Envelope Window Assembler

Lays 366 leap-calendar slots out from roughly six months before today to
six months after, and fills each slot with:

- the historical band (min / p25 / p75 / max),
- every spanning year-pair trace ("23/24"),
- every averaging bucket,
- the "current" trace: recent actuals up to today, forecast from today on.

Which overlay is shown is left to the presentation layer; all of them are
returned together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from core.calendar_index import LEAP_YEAR_DAYS, key_label, leap_calendar_keys
from core.models import DayStatistics, SpanningYearPair

SOURCE_ACTUAL = "actual"
SOURCE_FORECAST = "forecast"

# Offsets (in months) from today's month tried as the window start.
START_MONTH_OFFSETS = (-7, -6, -5)


def _today_key(today: date) -> str:
    return today.strftime("%m-%d")


def candidate_start_months(today: date) -> List[int]:
    return [(today.month - 1 + offset) % 12 + 1 for offset in START_MONTH_OFFSETS]


def choose_start_month(today: date) -> Tuple[int, int]:
    """
    Pick the start month whose window puts today closest to the middle.

    Returns (start_month, today_index). Ties keep the earlier candidate.
    """
    half = LEAP_YEAR_DAYS / 2.0
    best: Optional[Tuple[int, int]] = None
    best_score = None
    key = _today_key(today)
    for month in candidate_start_months(today):
        index = leap_calendar_keys(month).index(key)
        score = abs(index - half)
        if best_score is None or score < best_score:
            best, best_score = (month, index), score
    return best


def spanning_pairs(years: Iterable[int]) -> List[SpanningYearPair]:
    """Pairs of consecutive available years, oldest first."""
    available = sorted(set(years))
    present = set(available)
    return [SpanningYearPair.from_start_year(y) for y in available if y + 1 in present]


def pair_trace(
    pair: SpanningYearPair,
    keys: List[str],
    start_month: int,
    overlay: Dict[int, Dict[str, float]],
) -> List[Optional[float]]:
    """year1 feeds slots from the start month to December, year2 the rest."""
    first = overlay.get(pair.year1, {})
    second = overlay.get(pair.year2, {})
    trace: List[Optional[float]] = []
    for key in keys:
        source = first if int(key[:2]) >= start_month else second
        trace.append(source.get(key))
    return trace


def current_trace(
    keys: List[str],
    today_index: int,
    recent: Dict[str, float],
    forecast: Dict[str, float],
) -> Tuple[List[Optional[float]], List[Optional[str]]]:
    """
    Actual values up to today, forecast values from today on.

    Today's slot prefers the actual value and falls back to the forecast.
    A slot never carries both.
    """
    values: List[Optional[float]] = []
    sources: List[Optional[str]] = []
    for index, key in enumerate(keys):
        value: Optional[float] = None
        source: Optional[str] = None
        if index <= today_index and recent.get(key) is not None:
            value, source = recent[key], SOURCE_ACTUAL
        elif index >= today_index and forecast.get(key) is not None:
            value, source = forecast[key], SOURCE_FORECAST
        values.append(value)
        sources.append(source)
    return values, sources


@dataclass
class ClimateWindow:
    start_month: int
    today_index: int
    keys: List[str] = field(default_factory=list)
    band: Dict[str, List[Optional[float]]] = field(default_factory=dict)
    pairs: Dict[str, List[Optional[float]]] = field(default_factory=dict)
    averages: Dict[str, List[Optional[float]]] = field(default_factory=dict)
    current: List[Optional[float]] = field(default_factory=list)
    current_source: List[Optional[str]] = field(default_factory=list)

    @property
    def labels(self) -> List[str]:
        return [key_label(k) for k in self.keys]

    def to_dict(self) -> dict:
        return {
            "startMonth": self.start_month,
            "todayIndex": self.today_index,
            "keys": self.keys,
            "labels": self.labels,
            "band": self.band,
            "pairs": self.pairs,
            "averages": self.averages,
            "current": self.current,
            "currentSource": self.current_source,
        }


def assemble_window(
    today: date,
    statistics: Dict[str, DayStatistics],
    overlay: Dict[int, Dict[str, float]],
    averages: Optional[Dict[str, Dict[str, float]]] = None,
    recent: Optional[Dict[str, float]] = None,
    forecast: Optional[Dict[str, float]] = None,
) -> ClimateWindow:
    start_month, today_index = choose_start_month(today)
    keys = leap_calendar_keys(start_month)

    band: Dict[str, List[Optional[float]]] = {name: [] for name in ("min", "p25", "p75", "max")}
    for key in keys:
        stats = statistics.get(key)
        for name in band:
            band[name].append(getattr(stats, name) if stats is not None else None)

    pairs = {
        pair.label: pair_trace(pair, keys, start_month, overlay)
        for pair in spanning_pairs(overlay)
    }
    bucket_traces = {
        bucket: [values.get(key) for key in keys]
        for bucket, values in (averages or {}).items()
    }
    current, sources = current_trace(keys, today_index, recent or {}, forecast or {})

    return ClimateWindow(
        start_month=start_month,
        today_index=today_index,
        keys=keys,
        band=band,
        pairs=pairs,
        averages=bucket_traces,
        current=current,
        current_source=sources,
    )
