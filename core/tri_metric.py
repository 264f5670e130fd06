"""
Tri-metric day profile: mean temperature, reference evapotranspiration and
daily light integral per MM-DD, with their all-time extremes and a trailing
multi-year mean. Feeds a ternary-style chart in the presentation layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from collector.open_meteo_fetcher import DailySeries
from core.averaging import average_by_month_day, trailing_years
from core.calendar_index import month_day_key
from core.derived_metrics import MEAN_TEMPERATURE, SHORTWAVE_RADIATION, daily_light_integral
from core.envelope import group_by_month_day
from core.models import YearlySampleGroup

ET0 = "et0_fao_evapotranspiration"

# Profile name -> metric id understood by the envelope grouping.
PROFILE_METRICS: Dict[str, str] = {
    "temperature": MEAN_TEMPERATURE,
    "et": ET0,
    "dli": "dli",
}

# Upstream columns needed for all three profile metrics.
FETCH_METRICS: List[str] = [MEAN_TEMPERATURE, ET0, SHORTWAVE_RADIATION]


def group_profile(year_series: Dict[int, DailySeries]) -> Dict[str, YearlySampleGroup]:
    return {name: group_by_month_day(year_series, metric) for name, metric in PROFILE_METRICS.items()}


def per_day_samples(groups: Dict[str, YearlySampleGroup]) -> Dict[str, Dict[str, List[dict]]]:
    """MM-DD -> {temperature: [{year, value}], et: [...], dli: [...]}"""
    keys = sorted(set().union(*(g.keys() for g in groups.values()))) if groups else []
    return {
        key: {name: [s.to_dict() for s in groups[name].get(key, [])] for name in PROFILE_METRICS}
        for key in keys
    }


def _all_values(group: YearlySampleGroup) -> List[float]:
    return [s.value for samples in group.values() for s in samples]


def profile_extremes(groups: Dict[str, YearlySampleGroup]) -> Dict[str, Dict[str, Optional[float]]]:
    """
    Chart axis extremes: temperature and ET run from 0 to the highest value
    ever seen; DLI runs from its lowest to its highest.
    """
    temps = _all_values(groups.get("temperature", {}))
    ets = _all_values(groups.get("et", {}))
    dlis = _all_values(groups.get("dli", {}))
    return {
        "temperature": {"min": 0, "max": max(temps) if temps else None},
        "et": {"min": 0, "max": max(ets) if ets else None},
        "dli": {"min": min(dlis) if dlis else None, "max": max(dlis) if dlis else None},
    }


def trailing_average(
    groups: Dict[str, YearlySampleGroup],
    history_years: Iterable[int],
    available_years: Iterable[int],
    year_count: int = 10,
) -> Dict[str, Dict[str, Optional[float]]]:
    """
    MM-DD -> {metric: mean, or None}.

    The window is the last `year_count` requested years; any of them that
    failed to fetch leave a gap rather than pulling in an older year.
    """
    available = set(available_years)
    years = [y for y in trailing_years(history_years, year_count) if y in available]
    means = {name: average_by_month_day(group, years) for name, group in groups.items()}
    keys = sorted(set().union(*(g.keys() for g in groups.values()))) if groups else []
    return {key: {name: means[name].get(key) for name in PROFILE_METRICS} for key in keys}


def profile_by_key(series: Optional[DailySeries]) -> Dict[str, Dict[str, Optional[float]]]:
    """
    Recent or forecast series -> MM-DD -> {temperature, et, dli}.

    Days where all three are missing are dropped.
    """
    result: Dict[str, Dict[str, Optional[float]]] = {}
    if series is None:
        return result
    temps = series.column(MEAN_TEMPERATURE)
    ets = series.column(ET0)
    shortwave = series.column(SHORTWAVE_RADIATION)
    for iso_date, temp, et, swr in zip(series.dates, temps, ets, shortwave):
        dli = daily_light_integral(swr) if swr is not None else None
        if temp is None and et is None and dli is None:
            continue
        result[month_day_key(iso_date)] = {"temperature": temp, "et": et, "dli": dli}
    return result


@dataclass
class TriMetricProfile:
    per_day: Dict[str, Dict[str, List[dict]]] = field(default_factory=dict)
    extremes: Dict[str, Dict[str, Optional[float]]] = field(default_factory=dict)
    ten_year_avg: Dict[str, Dict[str, Optional[float]]] = field(default_factory=dict)
    recent: Dict[str, Dict[str, Optional[float]]] = field(default_factory=dict)
    forecast: Dict[str, Dict[str, Optional[float]]] = field(default_factory=dict)
    years: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "perDay": self.per_day,
            "extremes": self.extremes,
            "tenYearAvg": self.ten_year_avg,
            "recentData": self.recent,
            "forecastData": self.forecast,
            "years": self.years,
        }


def build_tri_metric_profile(
    year_series: Dict[int, DailySeries],
    recent: Optional[DailySeries] = None,
    forecast: Optional[DailySeries] = None,
    average_years: int = 10,
    history_years: Optional[Iterable[int]] = None,
) -> TriMetricProfile:
    groups = group_profile(year_series)
    years = sorted(year_series)
    if history_years is None:
        history_years = years
    return TriMetricProfile(
        per_day=per_day_samples(groups),
        extremes=profile_extremes(groups),
        ten_year_avg=trailing_average(groups, history_years, years, average_years),
        recent=profile_by_key(recent),
        forecast=profile_by_key(forecast),
        years=years,
    )
