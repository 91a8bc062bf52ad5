from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from time import monotonic
from typing import Any

import httpx

from kitchen_dashboard.config import Settings


logger = logging.getLogger(__name__)

RETRYABLE_HTTP_STATUS = {408, 429, 500, 502, 503, 504}
FORECAST_DAYS = 8
CURRENT_FIELDS = "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m"
DAILY_FIELDS = "weather_code,temperature_2m_max,temperature_2m_min"


@dataclass
class WeatherClient:
    settings: Settings
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)
    _cache: dict[str, tuple[float, Any]] = field(default_factory=dict, init=False)
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            timeout=self.settings.request_timeout_seconds,
            transport=self.transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_forecast(self, latitude: float, longitude: float, unit: str = "celsius") -> dict:
        return await self._get_json(
            url=f"{self.settings.open_meteo_base_url}/forecast",
            params={
                "latitude": latitude,
                "longitude": longitude,
                "current": CURRENT_FIELDS,
                "daily": DAILY_FIELDS,
                "temperature_unit": unit,
                "wind_speed_unit": "mph",
                "timezone": "auto",
                "forecast_days": FORECAST_DAYS,
            },
            cache_key=f"forecast:{round(latitude, 4)}:{round(longitude, 4)}:{unit}",
            cache_ttl_seconds=self.settings.weather_cache_ttl_seconds,
        )

    async def reverse_geocode(self, latitude: float, longitude: float) -> dict[str, str | None]:
        payload = await self._get_json(
            url=self.settings.nominatim_reverse_url,
            params={"format": "json", "lat": latitude, "lon": longitude},
            headers={"User-Agent": self.settings.user_agent},
            cache_key=f"reverse-geo:{round(latitude, 5)}:{round(longitude, 5)}",
            cache_ttl_seconds=self.settings.geocode_cache_ttl_seconds,
            retry_attempts=1,
        )
        return extract_place(payload)

    async def ip_geolocate(self) -> dict:
        payload = await self._get_json(
            url=self.settings.ip_geolocation_url,
            headers={"User-Agent": self.settings.user_agent},
            retry_attempts=0,
        )
        if not isinstance(payload, dict):
            return {}
        return payload

    async def _get_json(
        self,
        *,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        cache_key: str | None = None,
        cache_ttl_seconds: int = 0,
        retry_attempts: int | None = None,
    ) -> Any:
        if cache_key and cache_ttl_seconds > 0:
            cached = self._cache_get(cache_key)
            if cached is not None:
                return cached

        attempts = self.settings.api_retry_attempts if retry_attempts is None else max(0, retry_attempts)
        for attempt in range(attempts + 1):
            try:
                response = await self._client.get(url, params=params, headers=headers)
                response.raise_for_status()
                payload = response.json()
                if cache_key and cache_ttl_seconds > 0:
                    self._cache_set(cache_key, payload, ttl_seconds=cache_ttl_seconds)
                return payload
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code not in RETRYABLE_HTTP_STATUS or attempt >= attempts:
                    raise
                logger.warning("Upstream %s returned %s, retrying", url, status_code)
            except httpx.RequestError as exc:
                if attempt >= attempts:
                    raise
                logger.warning("Request to %s failed (%s), retrying", url, exc.__class__.__name__)
            await asyncio.sleep(0.35 * (attempt + 1))

        raise RuntimeError("Failed to fetch upstream JSON payload.")

    def _cache_get(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if monotonic() >= expires_at:
            self._cache.pop(key, None)
            return None
        return payload

    def _cache_set(self, key: str, payload: Any, *, ttl_seconds: int) -> None:
        now = monotonic()
        expired = [cached_key for cached_key, (expires_at, _) in self._cache.items() if now >= expires_at]
        for cached_key in expired:
            del self._cache[cached_key]
        self._cache[key] = (now + max(1, ttl_seconds), payload)


def extract_place(payload: object) -> dict[str, str | None]:
    if not isinstance(payload, dict):
        return {"city": None, "country": None}
    address = payload.get("address", {}) if isinstance(payload.get("address"), dict) else {}
    city = address.get("city") or address.get("town") or address.get("village") or address.get("county")
    return {"city": city or None, "country": address.get("country") or None}


def as_float(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
