"""
Running totals and threshold crossings over an ordered day sequence.

Typical use: accumulate growing degree days from an application date and
mark every 100 degree-days reached.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Sequence, Union

from core.models import AccumulationSeries, ThresholdCrossing


def resolve_start_index(dates: Sequence[str], start_date: Optional[Union[str, date]] = None) -> int:
    """
    Position of the first ISO date whose MM-DD matches `start_date`.

    Only month and day are compared so one start date works for every
    year's table. Returns 0 when no start date is given or none matches.
    """
    if not start_date:
        return 0
    if isinstance(start_date, date):
        target = start_date.strftime("%m-%d")
    else:
        text = str(start_date).strip()
        target = text[5:10] if len(text) >= 10 else text
    for index, iso_date in enumerate(dates):
        if iso_date[5:10] == target:
            return index
    return 0


def accumulate(values: Sequence[Optional[float]], start_index: int = 0) -> List[float]:
    """
    Cumulative sum pinned at 0 before `start_index`.

    >>> accumulate([5, 5, 5, 5, 5], start_index=2)
    [0, 0, 5, 10, 15]
    """
    start_index = max(0, int(start_index))
    running = 0
    cumulative: List[float] = []
    for index, value in enumerate(values):
        if index >= start_index and value is not None:
            running += value
        cumulative.append(running)
    return cumulative


def detect_crossings(
    cumulative: Sequence[float],
    start_index: int = 0,
    threshold: Optional[float] = None,
    pin_start: bool = False,
) -> List[ThresholdCrossing]:
    """
    Emit a crossing for every multiple of `threshold` the running total reaches.

    With `pin_start`, an ordinal-1 marker is placed at `start_index` first;
    it carries value 0 and does not count toward the total. A day that
    reaches several multiples at once emits one crossing per multiple.
    """
    crossings: List[ThresholdCrossing] = []
    start_index = max(0, int(start_index))
    if start_index >= len(cumulative):
        return crossings

    ordinal = 0
    if pin_start:
        ordinal = 1
        crossings.append(ThresholdCrossing(
            day_index=start_index,
            cumulative_value=0,
            ordinal=ordinal,
            days_since_last=0,
            is_start_marker=True,
        ))

    if threshold is None or threshold <= 0:
        return crossings

    next_mark = threshold
    last_index = start_index
    for index in range(start_index, len(cumulative)):
        total = cumulative[index]
        while total >= next_mark:
            ordinal += 1
            crossings.append(ThresholdCrossing(
                day_index=index,
                cumulative_value=total,
                ordinal=ordinal,
                days_since_last=index - last_index,
            ))
            last_index = index
            next_mark += threshold
    return crossings


def build_accumulation(
    values: Sequence[Optional[float]],
    start_index: int = 0,
    threshold: Optional[float] = None,
    pin_start: bool = False,
) -> AccumulationSeries:
    cumulative = accumulate(values, start_index)
    return AccumulationSeries(
        values=cumulative,
        start_index=max(0, int(start_index)),
        threshold=threshold,
        crossings=detect_crossings(cumulative, start_index, threshold, pin_start),
    )
