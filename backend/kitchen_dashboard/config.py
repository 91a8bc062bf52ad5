from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    app_name: str = "Kitchen Dashboard API"
    app_version: str = "1.0.0"
    open_meteo_base_url: str = "https://api.open-meteo.com/v1"
    nominatim_reverse_url: str = "https://nominatim.openstreetmap.org/reverse"
    ip_geolocation_url: str = "https://ipapi.co/json/"
    google_calendar_base_url: str = "https://www.googleapis.com/calendar/v3"
    google_calendar_scopes: tuple[str, ...] = ("https://www.googleapis.com/auth/calendar.readonly",)
    google_service_account_json: str | None = None
    google_credentials_path: str = "homer-calendar-access-creds.json"
    google_calendar_id: str | None = None
    user_agent: str = "KitchenDashboard/1.0"
    weather_cache_ttl_seconds: int = 1800
    geocode_cache_ttl_seconds: int = 3600
    api_retry_attempts: int = 2
    request_timeout_seconds: float = 12.0
    default_latitude: float = 37.7749
    default_longitude: float = -122.4194
    default_city: str = "San Francisco"
    default_country: str = "USA"
    refresh_interval_seconds: int = 600
    log_level: str = "INFO"
    frontend_origins: tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")


def get_settings() -> Settings:
    origins_raw = os.getenv("FRONTEND_ORIGINS", "").strip()
    cache_ttl_raw = os.getenv("WEATHER_CACHE_TTL_SECONDS", "").strip()
    retry_attempts_raw = os.getenv("API_RETRY_ATTEMPTS", "").strip()
    timeout_raw = os.getenv("REQUEST_TIMEOUT_SECONDS", "").strip()
    refresh_raw = os.getenv("REFRESH_INTERVAL_SECONDS", "").strip()
    latitude_raw = os.getenv("DEFAULT_LATITUDE", "").strip()
    longitude_raw = os.getenv("DEFAULT_LONGITUDE", "").strip()

    parsed_origins = tuple(item.strip() for item in origins_raw.split(",") if item.strip())

    try:
        cache_ttl_seconds = int(cache_ttl_raw) if cache_ttl_raw else 1800
    except ValueError:
        cache_ttl_seconds = 1800

    try:
        retry_attempts = int(retry_attempts_raw) if retry_attempts_raw else 2
    except ValueError:
        retry_attempts = 2

    try:
        request_timeout_seconds = float(timeout_raw) if timeout_raw else 12.0
    except ValueError:
        request_timeout_seconds = 12.0

    try:
        refresh_interval_seconds = int(refresh_raw) if refresh_raw else 600
    except ValueError:
        refresh_interval_seconds = 600

    try:
        default_latitude = float(latitude_raw) if latitude_raw else Settings.default_latitude
    except ValueError:
        default_latitude = Settings.default_latitude

    try:
        default_longitude = float(longitude_raw) if longitude_raw else Settings.default_longitude
    except ValueError:
        default_longitude = Settings.default_longitude

    return Settings(
        frontend_origins=parsed_origins or Settings.frontend_origins,
        google_service_account_json=os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON") or None,
        google_credentials_path=os.getenv("GOOGLE_CREDENTIALS_PATH", "").strip() or Settings.google_credentials_path,
        google_calendar_id=os.getenv("GOOGLE_CALENDAR_ID", "").strip() or None,
        weather_cache_ttl_seconds=max(60, cache_ttl_seconds),
        api_retry_attempts=max(0, retry_attempts),
        request_timeout_seconds=max(1.0, request_timeout_seconds),
        default_latitude=default_latitude,
        default_longitude=default_longitude,
        default_city=os.getenv("DEFAULT_CITY", "").strip() or Settings.default_city,
        default_country=os.getenv("DEFAULT_COUNTRY", "").strip() or Settings.default_country,
        refresh_interval_seconds=max(30, refresh_interval_seconds),
        log_level=os.getenv("LOG_LEVEL", "").strip().upper() or Settings.log_level,
    )
