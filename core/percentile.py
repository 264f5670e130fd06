"""
Order statistics used by the climate envelope.
"""

import math
from typing import Iterable, List


def percentile(values: Iterable[float], p: float) -> float:
    """
    Linear interpolation between closest ranks.

    The fractional rank is (p / 100) * (n - 1) over the ascending values.

    Examples:
        percentile([1, 2, 3, 4], 25) -> 1.75
        percentile([1, 2, 3, 4], 75) -> 3.25
    """
    ordered: List[float] = sorted(values)
    if not ordered:
        raise ValueError("percentile() of an empty sample")
    if not 0 <= p <= 100:
        raise ValueError(f"Percentile out of range: {p}")

    index = (p / 100.0) * (len(ordered) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    if lower == upper:
        return ordered[lower]
    return ordered[lower] + (index - lower) * (ordered[upper] - ordered[lower])


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean of a non-empty sample."""
    items = list(values)
    if not items:
        raise ValueError("mean() of an empty sample")
    return sum(items) / len(items)
