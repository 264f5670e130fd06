# Load environment variables FIRST (before any other imports)
from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import logging
import traceback
from typing import List, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

# Silence verbose loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logger = logging.getLogger("web_server")

from config import AVERAGE_BUCKETS, PRIMARY_METRICS, load_config_from_env
from core.aggregation import (
    run_accumulation_query,
    run_envelope_query,
    run_range_query,
    run_tri_metric_query,
)
from core.derived_metrics import DERIVED_METRICS
from core.models import DateRange

app = FastAPI(title="Almanac Weather Lab")
CONFIG = load_config_from_env()


# Request bodies
class MonthDay(BaseModel):
    month: int
    day: int


class RangeRequest(BaseModel):
    startDate: Optional[MonthDay] = None
    endDate: Optional[MonthDay] = None
    years: Optional[List[int]] = None
    metrics: Optional[List[str]] = None
    averages: Optional[List[str]] = None
    lat: Optional[float] = None
    lon: Optional[float] = None


class EnvelopeRequest(BaseModel):
    metric: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None


class AccumulationRequest(BaseModel):
    metric: Optional[str] = None
    startDate: Optional[MonthDay] = None
    endDate: Optional[MonthDay] = None
    years: Optional[List[int]] = None
    accumulationStart: Optional[str] = None
    threshold: Optional[float] = None
    pinStart: bool = False
    lat: Optional[float] = None
    lon: Optional[float] = None


class LocationRequest(BaseModel):
    lat: Optional[float] = None
    lon: Optional[float] = None


def _date_range(start: Optional[MonthDay], end: Optional[MonthDay]) -> Optional[DateRange]:
    if start is None or end is None:
        return None
    return DateRange(start.month, start.day, end.month, end.day)


def _bad_request(e: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(e)})


def _server_error(what: str, e: Exception) -> JSONResponse:
    logger.error(f"{what} failed: {e}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={"error": str(e), "type": type(e).__name__}
    )


@app.get("/api/metrics")
def get_metrics():
    """Metric catalogue: primary upstream metrics, derived metrics and averaging buckets."""
    return {
        "primary": [
            {"id": info.metric_id, "name": info.name, "unit": info.unit}
            for info in PRIMARY_METRICS.values()
        ],
        "derived": [
            {"id": spec.metric_id, "name": spec.label, "unit": spec.unit, "dependsOn": spec.depends_on}
            for spec in DERIVED_METRICS.values()
        ],
        "averages": AVERAGE_BUCKETS,
        "location": {"lat": CONFIG.latitude, "lon": CONFIG.longitude, "timezone": CONFIG.timezone},
    }


@app.post("/api/weather")
async def weather(body: RangeRequest):
    """Per-year tables for a month/day range (cross-year ranges supported)."""
    try:
        return await run_range_query(
            CONFIG,
            metrics=body.metrics,
            years=body.years,
            date_range=_date_range(body.startDate, body.endDate),
            lat=body.lat,
            lon=body.lon,
            averages=body.averages,
        )
    except ValueError as e:
        return _bad_request(e)
    except Exception as e:
        return _server_error("Range query", e)


@app.post("/api/cave")
async def cave(body: EnvelopeRequest):
    """Historical envelope around today, with overlays, averages and the current trace."""
    try:
        return await run_envelope_query(CONFIG, metric=body.metric, lat=body.lat, lon=body.lon)
    except ValueError as e:
        return _bad_request(e)
    except Exception as e:
        return _server_error("Envelope query", e)


@app.post("/api/accumulation")
async def accumulation(body: AccumulationRequest):
    try:
        return await run_accumulation_query(
            CONFIG,
            metric=body.metric,
            years=body.years,
            date_range=_date_range(body.startDate, body.endDate),
            start_date=body.accumulationStart,
            threshold=body.threshold,
            pin_start=body.pinStart,
            lat=body.lat,
            lon=body.lon,
        )
    except ValueError as e:
        return _bad_request(e)
    except Exception as e:
        return _server_error("Accumulation query", e)


@app.post("/api/ternary")
async def ternary(body: LocationRequest):
    try:
        return await run_tri_metric_query(CONFIG, lat=body.lat, lon=body.lon)
    except ValueError as e:
        return _bad_request(e)
    except Exception as e:
        return _server_error("Tri-metric query", e)


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000)
