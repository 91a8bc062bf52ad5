from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kitchen_dashboard.config import get_settings
from kitchen_dashboard.errors import DashboardError, FetchError, InvalidTimezoneError, ValidationError
from kitchen_dashboard.logging_config import configure_logging
from kitchen_dashboard.schemas import CalendarEvent, GeocodeResult, Location, WeatherSnapshot
from kitchen_dashboard.services.calendar import CalendarService
from kitchen_dashboard.services.calendar_client import GoogleCalendarClient
from kitchen_dashboard.services.location import ReportedPositionLocator, build_location_resolver
from kitchen_dashboard.services.weather import SUPPORTED_UNITS, WeatherAggregator
from kitchen_dashboard.services.weather_client import WeatherClient, as_float


settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

weather_client = WeatherClient(settings=settings)
calendar_client = GoogleCalendarClient(settings=settings)
weather_aggregator = WeatherAggregator(client=weather_client)
calendar_service = CalendarService(client=calendar_client)

app = FastAPI(title=settings.app_name, version=settings.app_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.frontend_origins),
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)

FAILURE_MESSAGES = {
    "/api/weather": "Failed to fetch weather",
    "/api/calendar": "Failed to fetch calendar events",
    "/api/geocode": "Failed to reverse geocode",
}


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await weather_client.close()
    await calendar_client.close()


@app.exception_handler(ValidationError)
@app.exception_handler(InvalidTimezoneError)
async def bad_request_handler(request: Request, exc: DashboardError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    logger.error("%s failed: %s", request.url.path, exc, exc_info=exc)
    detail = FAILURE_MESSAGES.get(request.url.path, "Request failed")
    return JSONResponse(status_code=500, content={"detail": detail})


@app.get("/api/health")
async def health() -> dict:
    return {
        "status": "ok",
        "service": settings.app_name,
        "timestamp_utc": datetime.now(tz=timezone.utc).isoformat(),
    }


@app.get("/api/weather", response_model=WeatherSnapshot)
async def weather(
    lat: str | None = Query(default=None),
    lon: str | None = Query(default=None),
    unit: str = Query(default="celsius"),
) -> WeatherSnapshot:
    latitude, longitude = _require_coordinates(lat, lon)
    unit = unit.strip().lower() or "celsius"
    if unit not in SUPPORTED_UNITS:
        raise ValidationError(f"Invalid unit parameter. Use one of: {list(SUPPORTED_UNITS)}")
    return await weather_aggregator.fetch(latitude, longitude, unit)


@app.get("/api/calendar", response_model=list[CalendarEvent])
async def calendar(
    range_type: str | None = Query(default=None, alias="type"),
    timezone: str | None = Query(default=None),
) -> list[CalendarEvent]:
    if not timezone or not timezone.strip():
        raise ValidationError("Missing timezone parameter")

    if range_type == "today":
        return await calendar_service.fetch_today(timezone)
    if range_type == "week":
        return await calendar_service.fetch_week(timezone)
    raise ValidationError("Invalid type parameter. Use 'today' or 'week'")


@app.get("/api/geocode", response_model=GeocodeResult)
async def geocode(
    lat: str | None = Query(default=None),
    lon: str | None = Query(default=None),
) -> GeocodeResult:
    latitude, longitude = _require_coordinates(lat, lon)
    try:
        place = await weather_client.reverse_geocode(latitude=latitude, longitude=longitude)
    except (httpx.HTTPError, ValueError) as exc:
        raise FetchError("Reverse geocoding failed") from exc
    return GeocodeResult(city=place.get("city"), country=place.get("country"))


@app.get("/api/location", response_model=Location)
async def location(
    lat: str | None = Query(default=None),
    lon: str | None = Query(default=None),
    reported_at: str | None = Query(default=None),
) -> Location:
    # An unusable device report is dropped; the IP and default tiers still answer.
    latitude, longitude = as_float(lat), as_float(lon)
    locator = None
    if latitude is not None and longitude is not None:
        locator = ReportedPositionLocator(
            latitude=latitude, longitude=longitude, reported_at=_parse_reported_at(reported_at)
        )
    resolver = build_location_resolver(settings, weather_client, locator)
    return await resolver.resolve()


def _parse_reported_at(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _require_coordinates(lat: str | None, lon: str | None) -> tuple[float, float]:
    if not lat or not lon:
        raise ValidationError("Missing latitude or longitude")
    try:
        latitude = float(lat)
        longitude = float(lon)
    except ValueError as exc:
        raise ValidationError("Latitude and longitude must be numbers") from exc
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise ValidationError("Latitude and longitude must be finite numbers")
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        raise ValidationError("Latitude or longitude out of range")
    return latitude, longitude
