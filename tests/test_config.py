from datetime import date
from pathlib import Path
import sys


sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


from config import AVERAGE_BUCKETS, AlmanacConfig, load_config_from_env


def test_defaults():
    config = AlmanacConfig()

    assert (config.latitude, config.longitude) == (53.8475, -1.8397)
    assert config.min_samples == 3
    assert AVERAGE_BUCKETS[0] == "allTime"
    assert "2020s" in AVERAGE_BUCKETS


def test_history_years_end_last_year_by_default():
    years = AlmanacConfig(history_start_year=2020).history_years(date(2026, 10, 19))

    assert years == [2020, 2021, 2022, 2023, 2024, 2025]
    assert AlmanacConfig(history_start_year=2020, history_end_year=2021).history_years() == [2020, 2021]


def test_resolve_location_falls_back_to_defaults():
    config = AlmanacConfig()

    assert config.resolve_location(None, None) == (53.8475, -1.8397)
    assert config.resolve_location(51.5, "-0.12") == (51.5, -0.12)


def test_load_config_from_env(monkeypatch):
    monkeypatch.setenv("ALMANAC_LATITUDE", "51.5")
    monkeypatch.setenv("ALMANAC_HISTORY_END_YEAR", "2010")
    monkeypatch.setenv("ALMANAC_FORECAST_DAYS", "40")
    monkeypatch.setenv("ALMANAC_MIN_SAMPLES", "1")
    monkeypatch.setenv("ALMANAC_CACHE_ENABLED", "false")
    monkeypatch.setenv("ALMANAC_FETCH_CONCURRENCY", "not-a-number")

    config = load_config_from_env()

    assert config.latitude == 51.5
    assert config.history_end_year == 2010
    assert config.forecast_days == 16
    assert config.min_samples == 3
    assert config.cache_enabled is False
    assert config.fetch_concurrency == 8
