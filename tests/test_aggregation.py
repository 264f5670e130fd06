import asyncio
from datetime import date, timedelta
from pathlib import Path
import sys

import pytest


sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


from collector.open_meteo_fetcher import DailySeries, UpstreamUnavailable
from config import AlmanacConfig
from core import aggregation
from core.aggregation import (
    MissingRequiredParameter,
    run_accumulation_query,
    run_envelope_query,
    run_range_query,
    run_tri_metric_query,
)
from core.models import DateRange


TODAY = date(2026, 10, 19)


def _config():
    return AlmanacConfig(history_start_year=2020, history_end_year=2024, cache_enabled=False)


def _days(start: str, end: str):
    current = date.fromisoformat(start)
    last = date.fromisoformat(end)
    while current <= last:
        yield current.isoformat()
        current += timedelta(days=1)


def _fake_archive(value_for, fail_years=(), calls=None):
    """Archive stand-in: every metric gets value_for(iso_date)."""

    async def fake(latitude, longitude, start_date, end_date, metrics, **kwargs):
        if calls is not None:
            calls.append((start_date, end_date, tuple(metrics)))
        if int(start_date[:4]) in fail_years:
            raise UpstreamUnavailable("API returned 500", status_code=500)
        dates = list(_days(start_date, end_date))
        return DailySeries(dates=dates, values={m: [value_for(d) for d in dates] for m in metrics})

    return fake


def _by_year(iso_date):
    return float(int(iso_date[:4]) - 2000)


def test_range_query_with_derived_metric_and_decade_average(monkeypatch):
    calls = []
    monkeypatch.setattr(
        aggregation, "fetch_archive_cached",
        _fake_archive(lambda d: float(int(d[:4]) - 2010), calls=calls),
    )

    response = asyncio.run(run_range_query(
        _config(),
        metrics=["gdd6"],
        years=[2021],
        date_range=DateRange(12, 30, 1, 2),
        averages=["2020s"],
        today=TODAY,
    ))

    assert response["success"] is True
    table = response["data"]["2021"]
    assert table["labels"] == ["Dec 30", "Dec 31", "Jan 1", "Jan 2"]
    assert table["gdd6"] == [5.0, 5.0, 6.0, 6.0]
    assert response["labels"] == {"2021": "21/22"}
    assert response["unavailable"] == []
    assert all(call[2] == ("temperature_2m_mean",) for call in calls)

    bucket = response["averages"]["2020s"]
    assert bucket["keys"] == ["12-30", "12-31", "01-01", "01-02"]
    assert bucket["years"] == [2020, 2021, 2022, 2023, 2024]
    assert bucket["gdd6"] == [pytest.approx(6.0), pytest.approx(6.0), pytest.approx(7.0), pytest.approx(7.0)]


def test_range_query_reports_unavailable_years(monkeypatch):
    monkeypatch.setattr(aggregation, "fetch_archive_cached", _fake_archive(_by_year, fail_years={2022}))

    response = asyncio.run(run_range_query(
        _config(),
        metrics=["precipitation_sum"],
        years=[2021, 2022, 2023],
        date_range=DateRange(3, 1, 3, 2),
    ))

    assert sorted(response["data"]) == ["2021", "2023"]
    assert response["unavailable"] == [2022]
    assert "averages" not in response


def test_missing_parameters_fail_before_any_fetch(monkeypatch):
    calls = []
    monkeypatch.setattr(aggregation, "fetch_archive_cached", _fake_archive(_by_year, calls=calls))

    with pytest.raises(MissingRequiredParameter):
        asyncio.run(run_range_query(_config(), metrics=["precipitation_sum"], years=[], date_range=DateRange(1, 1, 1, 2)))
    with pytest.raises(MissingRequiredParameter):
        asyncio.run(run_envelope_query(_config(), metric=None))
    with pytest.raises(ValueError):
        asyncio.run(run_range_query(
            _config(), metrics=["precipitation_sum"], years=[2020],
            date_range=DateRange(1, 1, 1, 2), averages=["1950s"],
        ))
    assert calls == []


def test_envelope_query_degrades_without_changing_shape(monkeypatch):
    monkeypatch.setattr(aggregation, "fetch_archive_cached", _fake_archive(_by_year, fail_years={2022}))

    async def fake_recent(latitude, longitude, metrics, **kwargs):
        dates = ["2026-10-17", "2026-10-18", "2026-10-19"]
        return DailySeries(dates=dates, values={metrics[0]: [1.0, None, 3.0]})

    async def failing_forecast(*args, **kwargs):
        raise UpstreamUnavailable("API returned 502", status_code=502)

    monkeypatch.setattr(aggregation, "fetch_recent_actuals", fake_recent)
    monkeypatch.setattr(aggregation, "fetch_forecast", failing_forecast)

    response = asyncio.run(run_envelope_query(_config(), metric="temperature_2m_mean", today=TODAY))

    assert response["success"] is True
    assert response["historicalYears"] == [2020, 2021, 2022, 2023, 2024]
    assert response["failedYears"] == [2022]
    assert response["overlayYears"] == [2020, 2021, 2023, 2024]
    assert response["data"]["10-19"]["max"] == 24.0
    assert response["data"]["10-19"]["min"] == 20.0
    # Only 2020 and 2024 are leap years.
    assert "02-29" not in response["data"]
    assert response["overlayData"]["2024"]["02-29"] == 24.0
    assert [p["label"] for p in response["spanningPairs"]] == ["20/21", "23/24"]
    assert response["recentData"] == {"10-17": 1.0, "10-19": 3.0}
    assert response["forecastData"] == {}
    assert response["averagesData"]["2020s"]["10-19"] == pytest.approx(22.0)
    assert response["averagesData"]["1980s"] == {}

    window = response["window"]
    assert window["todayIndex"] == 171
    assert window["current"][171] == 3.0
    assert window["currentSource"][171] == "actual"
    assert set(window["averages"]) == set(response["averagesData"])


def test_accumulation_query(monkeypatch):
    monkeypatch.setattr(aggregation, "fetch_archive_cached", _fake_archive(lambda d: 5.0))

    response = asyncio.run(run_accumulation_query(
        _config(),
        metric="gdd0",
        years=[2021],
        date_range=DateRange(3, 1, 3, 5),
        start_date="2021-03-02",
        threshold=10,
        pin_start=True,
    ))

    entry = response["data"]["2021"]
    assert entry["values"] == [5.0] * 5
    assert entry["cumulative"] == [0, 5.0, 10.0, 15.0, 20.0]
    assert entry["startIndex"] == 1
    assert [(c["ordinal"], c["dayIndex"]) for c in entry["crossings"]] == [(1, 1), (2, 2), (3, 4)]


def test_tri_metric_query(monkeypatch):
    monkeypatch.setattr(aggregation, "fetch_archive_cached", _fake_archive(_by_year))

    async def no_data(*args, **kwargs):
        raise UpstreamUnavailable("API returned 500", status_code=500)

    monkeypatch.setattr(aggregation, "fetch_recent_actuals", no_data)
    monkeypatch.setattr(aggregation, "fetch_forecast", no_data)

    response = asyncio.run(run_tri_metric_query(_config(), today=TODAY))

    assert response["success"] is True
    assert response["years"] == [2020, 2021, 2022, 2023, 2024]
    assert response["extremes"]["temperature"]["max"] == 24.0
    assert response["recentData"] == {}
    assert len(response["perDay"]["01-01"]["et"]) == 5


def test_unknown_metric_is_passed_through_to_upstream(monkeypatch):
    calls = []
    monkeypatch.setattr(aggregation, "fetch_archive_cached", _fake_archive(_by_year, calls=calls))

    response = asyncio.run(run_range_query(
        _config(), metrics=["snowfall_sum"], years=[2020], date_range=DateRange(1, 1, 1, 2),
    ))

    assert calls == [("2020-01-01", "2020-01-02", ("snowfall_sum",))]
    assert response["data"]["2020"]["snowfall_sum"] == [20.0, 20.0]


def test_tri_metric_average_window_follows_requested_years(monkeypatch):
    monkeypatch.setattr(aggregation, "fetch_archive_cached", _fake_archive(_by_year, fail_years={2024}))

    async def no_data(*args, **kwargs):
        raise UpstreamUnavailable("API returned 500", status_code=500)

    monkeypatch.setattr(aggregation, "fetch_recent_actuals", no_data)
    monkeypatch.setattr(aggregation, "fetch_forecast", no_data)

    config = _config()
    config.tri_metric_average_years = 2
    response = asyncio.run(run_tri_metric_query(config, today=TODAY))

    assert response["years"] == [2020, 2021, 2022, 2023]
    assert response["tenYearAvg"]["06-01"]["temperature"] == pytest.approx(23.0)
