from datetime import date
from pathlib import Path
import sys


sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


from core.accumulation import accumulate, build_accumulation, detect_crossings, resolve_start_index


def test_accumulation_is_pinned_before_start_index():
    assert accumulate([5, 5, 5, 5, 5], start_index=2) == [0, 0, 5, 10, 15]


def test_null_values_add_nothing_but_keep_the_total():
    assert accumulate([1, None, 2, None], start_index=0) == [1, 1, 3, 3]


def test_threshold_ordinals_with_start_marker():
    crossings = detect_crossings([0, 0, 5, 10, 15, 25, 30], start_index=2, threshold=10, pin_start=True)

    assert [(c.ordinal, c.day_index) for c in crossings] == [(1, 2), (2, 3), (3, 5), (4, 6)]
    marker = crossings[0]
    assert marker.is_start_marker
    assert marker.cumulative_value == 0
    assert [c.days_since_last for c in crossings[1:]] == [1, 2, 1]
    assert [c.cumulative_value for c in crossings[1:]] == [10, 25, 30]


def test_threshold_without_start_marker_counts_from_one():
    crossings = detect_crossings([0, 0, 5, 10, 15, 25, 30], start_index=2, threshold=10)

    assert [c.ordinal for c in crossings] == [1, 2, 3]
    assert crossings[0].days_since_last == 1


def test_day_reaching_two_multiples_emits_both():
    crossings = detect_crossings([4, 25], threshold=10)

    assert [(c.ordinal, c.day_index, c.days_since_last) for c in crossings] == [(1, 1, 1), (2, 1, 0)]


def test_no_threshold_gives_only_marker():
    assert detect_crossings([1, 2, 3], threshold=None) == []
    assert len(detect_crossings([1, 2, 3], start_index=1, threshold=0, pin_start=True)) == 1


def test_start_index_resolved_by_month_and_day():
    dates = ["2022-10-01", "2022-10-02", "2022-10-03"]

    assert resolve_start_index(dates, "2025-10-02") == 1
    assert resolve_start_index(dates, "10-03") == 2
    assert resolve_start_index(dates, date(2000, 10, 3)) == 2
    assert resolve_start_index(dates, "2025-04-01") == 0
    assert resolve_start_index(dates, None) == 0


def test_build_accumulation_payload():
    series = build_accumulation([5, 5, 5, 5, 5], start_index=2, threshold=10, pin_start=True)
    payload = series.to_dict()

    assert payload["cumulative"] == [0, 0, 5, 10, 15]
    assert payload["startIndex"] == 2
    assert payload["threshold"] == 10
    assert payload["crossings"][0]["isStartMarker"] is True
    assert payload["crossings"][1] == {
        "dayIndex": 3,
        "cumulativeValue": 10,
        "ordinal": 2,
        "daysSinceLast": 1,
        "isStartMarker": False,
    }
