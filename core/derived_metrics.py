"""
Derived metrics: values computed from a fetched metric on the same day.

Each derived metric declares the one upstream metric it depends on. When a
caller asks for a derived metric the dependency is added to the fetch set,
and the derived value is None whenever the dependency value is None.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.models import DerivedMetricSpec

# Growth potential: Gaussian response around an optimal mean temperature.
GROWTH_OPTIMUM_C = 20.0
GROWTH_SPREAD_C = 5.5

# PAR is ~45% of shortwave; 1 MJ of PAR is ~4.57 mol photons.
DLI_FACTOR = 2.04

MEAN_TEMPERATURE = "temperature_2m_mean"
SHORTWAVE_RADIATION = "shortwave_radiation_sum"


def growing_degree_days(tmean: float, base: float = 0.0) -> float:
    return max(0.0, tmean - base)


def growth_potential(tmean: float) -> float:
    return math.exp(-0.5 * ((tmean - GROWTH_OPTIMUM_C) / GROWTH_SPREAD_C) ** 2)


def daily_light_integral(shortwave_mj: float) -> float:
    return shortwave_mj * DLI_FACTOR


DERIVED_METRICS: Dict[str, DerivedMetricSpec] = {
    "gdd0": DerivedMetricSpec(
        metric_id="gdd0",
        depends_on=MEAN_TEMPERATURE,
        formula=lambda t: growing_degree_days(t, 0.0),
        label="Growing Degree Days (base 0)",
        unit="°C·day",
    ),
    "gdd6": DerivedMetricSpec(
        metric_id="gdd6",
        depends_on=MEAN_TEMPERATURE,
        formula=lambda t: growing_degree_days(t, 6.0),
        label="Growing Degree Days (base 6)",
        unit="°C·day",
    ),
    "growth_potential": DerivedMetricSpec(
        metric_id="growth_potential",
        depends_on=MEAN_TEMPERATURE,
        formula=growth_potential,
        label="Growth Potential",
        unit="",
    ),
    "dli": DerivedMetricSpec(
        metric_id="dli",
        depends_on=SHORTWAVE_RADIATION,
        formula=daily_light_integral,
        label="Daily Light Integral",
        unit="mol/m²/day",
    ),
}


def is_derived(metric_id: str) -> bool:
    return metric_id in DERIVED_METRICS


def get_derived_spec(metric_id: str) -> Optional[DerivedMetricSpec]:
    return DERIVED_METRICS.get(metric_id)


def upstream_metric(metric_id: str) -> str:
    """The metric that actually has to be fetched to produce `metric_id`."""
    spec = DERIVED_METRICS.get(metric_id)
    return spec.depends_on if spec else metric_id


@dataclass
class MetricPlan:
    """Requested metrics split by origin, plus the deduplicated fetch set."""
    requested: List[str] = field(default_factory=list)
    primary: List[str] = field(default_factory=list)
    derived: List[str] = field(default_factory=list)
    fetch: List[str] = field(default_factory=list)


def plan_metrics(requested: List[str]) -> MetricPlan:
    """
    Partition requested metrics and make sure every derived metric's
    dependency is fetched exactly once.
    """
    plan = MetricPlan(requested=list(dict.fromkeys(requested)))
    for metric in plan.requested:
        if is_derived(metric):
            plan.derived.append(metric)
        else:
            plan.primary.append(metric)

    plan.fetch = list(plan.primary)
    for metric in plan.derived:
        dependency = DERIVED_METRICS[metric].depends_on
        if dependency not in plan.fetch:
            plan.fetch.append(dependency)
    return plan


def derive_value(metric_id: str, dependency_value: Optional[float]) -> Optional[float]:
    spec = get_derived_spec(metric_id)
    if spec is None:
        raise KeyError(f"Not a derived metric: {metric_id}")
    if dependency_value is None:
        return None
    return spec.formula(dependency_value)


def metric_value(metric_id: str, upstream_value: Optional[float]) -> Optional[float]:
    """Pass primary values through; transform derived ones."""
    if is_derived(metric_id):
        return derive_value(metric_id, upstream_value)
    return upstream_value


def resolve_columns(series, requested: List[str]) -> Dict[str, List[Optional[float]]]:
    """
    Build one value column per requested metric from a fetched DailySeries.
    """
    columns: Dict[str, List[Optional[float]]] = {}
    for metric in dict.fromkeys(requested):
        source = series.column(upstream_metric(metric))
        if is_derived(metric):
            columns[metric] = [derive_value(metric, v) for v in source]
        else:
            columns[metric] = list(source)
    return columns
