"""
Almanac Weather Lab - Configuration
Central configuration for the default location, upstream endpoints and
the aggregation engine.
"""

import os
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

# ============================================================================
# API ENDPOINTS
# ============================================================================

# Open-Meteo historical archive (ERA5 reanalysis, ~2 day delay)
OPEN_METEO_ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"

# Open-Meteo forecast
OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

# Upstream hard limit for the forecast horizon
MAX_FORECAST_DAYS = 16

# ============================================================================
# METRIC CATALOGUE
# ============================================================================

@dataclass(frozen=True)
class MetricInfo:
    """Display metadata for a daily metric."""
    metric_id: str
    name: str
    unit: str


PRIMARY_METRICS: Dict[str, MetricInfo] = {
    "temperature_2m_mean": MetricInfo("temperature_2m_mean", "Mean Temperature", "°C"),
    "temperature_2m_max": MetricInfo("temperature_2m_max", "Max Temperature", "°C"),
    "temperature_2m_min": MetricInfo("temperature_2m_min", "Min Temperature", "°C"),
    "precipitation_sum": MetricInfo("precipitation_sum", "Precipitation", "mm"),
    "sunshine_duration": MetricInfo("sunshine_duration", "Sunshine Duration", "seconds"),
    "wind_speed_10m_max": MetricInfo("wind_speed_10m_max", "Max Wind Speed", "km/h"),
    "et0_fao_evapotranspiration": MetricInfo("et0_fao_evapotranspiration", "Reference Evapotranspiration", "mm"),
    "shortwave_radiation_sum": MetricInfo("shortwave_radiation_sum", "Shortwave Radiation", "MJ/m²"),
}

# The forecast endpoint has no daily mean temperature; it is rebuilt from max/min.
FORECAST_METRIC_MAP: Dict[str, List[str]] = {
    "temperature_2m_mean": ["temperature_2m_max", "temperature_2m_min"],
}

# ============================================================================
# AVERAGING BUCKETS
# ============================================================================

ALL_TIME_BUCKET = "allTime"

DECADE_BUCKETS: Dict[str, int] = {
    "1980s": 1980,
    "1990s": 1990,
    "2000s": 2000,
    "2010s": 2010,
    "2020s": 2020,
}

AVERAGE_BUCKETS: List[str] = [ALL_TIME_BUCKET] + list(DECADE_BUCKETS)

# ============================================================================
# ENGINE CONFIGURATION
# ============================================================================


def _env_bool(name: str, default: bool = False) -> bool:
    raw = str(os.environ.get(name, "")).strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = str(os.environ.get(name, "")).strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _env_optional_int(name: str) -> Optional[int]:
    raw = str(os.environ.get(name, "")).strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _env_float(name: str, default: float) -> float:
    raw = str(os.environ.get(name, "")).strip()
    if not raw:
        return float(default)
    try:
        return float(raw)
    except ValueError:
        return float(default)


@dataclass
class AlmanacConfig:
    """Explicit configuration handed to every aggregation entry point."""
    # Default location: Bingley, West Yorkshire
    latitude: float = 53.8475
    longitude: float = -1.8397
    timezone: str = "Europe/London"

    # Historical window (ERA5 is available from 1940; the envelope uses 1980+)
    history_start_year: int = 1980
    history_end_year: Optional[int] = None  # None -> current year - 1

    forecast_days: int = MAX_FORECAST_DAYS
    recent_months: int = 6

    # Fan-out
    fetch_concurrency: int = 8
    request_timeout_seconds: float = 30.0
    fanout_deadline_seconds: float = 180.0

    # Statistics
    min_samples: int = 3
    tri_metric_average_years: int = 10

    # Per-year series cache
    cache_enabled: bool = True
    cache_max_entries: int = 512
    cache_ttl_seconds: float = 7 * 24 * 3600
    cache_recent_ttl_seconds: float = 3600

    def history_years(self, today: Optional[date] = None) -> List[int]:
        """Return the list of historical years covered by the envelope."""
        today = today or date.today()
        end_year = self.history_end_year if self.history_end_year is not None else today.year - 1
        return list(range(self.history_start_year, end_year + 1))

    def resolve_location(self, lat: Optional[float], lon: Optional[float]) -> tuple:
        """Use the caller's coordinates, falling back to the configured location."""
        return (
            self.latitude if lat is None else float(lat),
            self.longitude if lon is None else float(lon),
        )


def load_config_from_env() -> AlmanacConfig:
    defaults = AlmanacConfig()
    return AlmanacConfig(
        latitude=_env_float("ALMANAC_LATITUDE", defaults.latitude),
        longitude=_env_float("ALMANAC_LONGITUDE", defaults.longitude),
        timezone=str(os.environ.get("ALMANAC_TIMEZONE", defaults.timezone)).strip() or defaults.timezone,
        history_start_year=_env_int("ALMANAC_HISTORY_START_YEAR", defaults.history_start_year),
        history_end_year=_env_optional_int("ALMANAC_HISTORY_END_YEAR"),
        forecast_days=max(1, min(MAX_FORECAST_DAYS, _env_int("ALMANAC_FORECAST_DAYS", defaults.forecast_days))),
        recent_months=_env_int("ALMANAC_RECENT_MONTHS", defaults.recent_months),
        fetch_concurrency=max(1, _env_int("ALMANAC_FETCH_CONCURRENCY", defaults.fetch_concurrency)),
        request_timeout_seconds=_env_float("ALMANAC_REQUEST_TIMEOUT_SECONDS", defaults.request_timeout_seconds),
        fanout_deadline_seconds=_env_float("ALMANAC_FANOUT_DEADLINE_SECONDS", defaults.fanout_deadline_seconds),
        min_samples=max(3, _env_int("ALMANAC_MIN_SAMPLES", defaults.min_samples)),
        tri_metric_average_years=_env_int("ALMANAC_TRI_METRIC_AVERAGE_YEARS", defaults.tri_metric_average_years),
        cache_enabled=_env_bool("ALMANAC_CACHE_ENABLED", defaults.cache_enabled),
        cache_max_entries=_env_int("ALMANAC_CACHE_MAX_ENTRIES", defaults.cache_max_entries),
        cache_ttl_seconds=_env_float("ALMANAC_CACHE_TTL_SECONDS", defaults.cache_ttl_seconds),
        cache_recent_ttl_seconds=_env_float("ALMANAC_CACHE_RECENT_TTL_SECONDS", defaults.cache_recent_ttl_seconds),
    )
