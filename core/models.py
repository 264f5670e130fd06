from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from core.calendar_index import days_in_month
from core.percentile import percentile

# A day-of-year statistic needs at least this many contributing years.
MIN_ENVELOPE_SAMPLES = 3


@dataclass(frozen=True)
class DailySample:
    """One upstream value for one metric on one calendar day."""
    iso_date: str
    metric_id: str
    value: Optional[float] = None

    @property
    def month_day(self) -> str:
        return self.iso_date[5:10]

    @property
    def year(self) -> int:
        return int(self.iso_date[:4])


@dataclass(frozen=True)
class YearlySample:
    """A single year's value for one MM-DD key."""
    year: int
    value: float

    def to_dict(self) -> dict:
        return {"year": self.year, "value": self.value}


# MonthDayKey -> samples from every contributing year
YearlySampleGroup = Dict[str, List[YearlySample]]


@dataclass(frozen=True)
class DayStatistics:
    """
    Historical spread of a metric for one MM-DD key.

    Only built through `from_samples`, which refuses to summarise fewer
    than MIN_ENVELOPE_SAMPLES years.
    """
    min: float
    p25: float
    p75: float
    max: float
    samples: Tuple[YearlySample, ...] = ()

    @classmethod
    def from_samples(cls, samples: List[YearlySample]) -> "DayStatistics":
        if len(samples) < MIN_ENVELOPE_SAMPLES:
            raise ValueError(
                f"DayStatistics needs >= {MIN_ENVELOPE_SAMPLES} samples, got {len(samples)}"
            )
        values = [s.value for s in samples]
        return cls(
            min=min(values),
            p25=percentile(values, 25),
            p75=percentile(values, 75),
            max=max(values),
            samples=tuple(samples),
        )

    def to_dict(self) -> dict:
        return {
            "min": self.min,
            "p25": self.p25,
            "p75": self.p75,
            "max": self.max,
            "values": [s.to_dict() for s in self.samples],
        }


@dataclass(frozen=True)
class DerivedMetricSpec:
    """A metric computed from one fetched metric rather than fetched itself."""
    metric_id: str
    depends_on: str
    formula: Callable[[float], float]
    label: str = ""
    unit: str = ""


@dataclass(frozen=True)
class DateRange:
    """Month/day range; wraps the year when the end falls before the start."""
    start_month: int
    start_day: int
    end_month: int
    end_day: int

    def __post_init__(self):
        for month in (self.start_month, self.end_month):
            if not 1 <= int(month) <= 12:
                raise ValueError(f"Invalid month: {month}")
        for month, day in ((self.start_month, self.start_day), (self.end_month, self.end_day)):
            if not 1 <= int(day) <= days_in_month(int(month)):
                raise ValueError(f"Invalid day: {int(month):02d}-{int(day):02d}")

    @property
    def wraps(self) -> bool:
        return (self.end_month, self.end_day) < (self.start_month, self.start_day)


@dataclass(frozen=True)
class SpanningYearPair:
    """One continuous 12-month trace sourced from two adjacent years."""
    label: str
    year1: int
    year2: int

    @classmethod
    def from_start_year(cls, year: int) -> "SpanningYearPair":
        return cls(label=f"{year % 100:02d}/{(year + 1) % 100:02d}", year1=year, year2=year + 1)


@dataclass(frozen=True)
class ThresholdCrossing:
    day_index: int
    cumulative_value: float
    ordinal: int
    days_since_last: int
    is_start_marker: bool = False

    def to_dict(self) -> dict:
        return {
            "dayIndex": self.day_index,
            "cumulativeValue": self.cumulative_value,
            "ordinal": self.ordinal,
            "daysSinceLast": self.days_since_last,
            "isStartMarker": self.is_start_marker,
        }


@dataclass
class AccumulationSeries:
    """Running total aligned 1:1 with a day sequence."""
    values: List[float]
    start_index: int = 0
    threshold: Optional[float] = None
    crossings: List[ThresholdCrossing] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "cumulative": list(self.values),
            "startIndex": self.start_index,
            "threshold": self.threshold,
            "crossings": [c.to_dict() for c in self.crossings],
        }
