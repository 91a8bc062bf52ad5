from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx

from kitchen_dashboard.errors import FetchError, ValidationError
from kitchen_dashboard.schemas import CurrentConditions, DaySummary, WeatherSnapshot
from kitchen_dashboard.services.weather_client import FORECAST_DAYS, WeatherClient, as_float
from kitchen_dashboard.services.weather_codes import translate


logger = logging.getLogger(__name__)

SUPPORTED_UNITS = ("celsius", "fahrenheit")
FORECAST_LENGTH = FORECAST_DAYS - 1


@dataclass
class WeatherAggregator:
    client: WeatherClient

    async def fetch(self, latitude: float, longitude: float, unit: str = "celsius") -> WeatherSnapshot:
        if unit not in SUPPORTED_UNITS:
            raise ValidationError(f"Unsupported unit {unit!r}. Use one of: {list(SUPPORTED_UNITS)}.")

        try:
            payload = await self.client.fetch_forecast(latitude=latitude, longitude=longitude, unit=unit)
        except (httpx.HTTPError, ValueError) as exc:
            raise FetchError("Failed to fetch weather data") from exc

        snapshot = build_weather_snapshot(payload)
        logger.debug("Weather snapshot built for %.4f,%.4f in %s", latitude, longitude, unit)
        return snapshot


def build_weather_snapshot(payload: Any) -> WeatherSnapshot:
    """Reshape an Open-Meteo forecast payload into a snapshot.

    Daily index 0 is the forecast's "today", which is already covered by
    ``current``; the following seven days become the daily summaries.
    """
    if not isinstance(payload, dict):
        raise FetchError("Weather payload is not an object")

    current = payload.get("current")
    daily = payload.get("daily")
    if not isinstance(current, dict) or not isinstance(daily, dict):
        raise FetchError("Weather payload is missing current or daily data")

    stamps = daily.get("time") or []
    codes = daily.get("weather_code") or []
    highs = daily.get("temperature_2m_max") or []
    lows = daily.get("temperature_2m_min") or []
    if min(len(stamps), len(codes), len(highs), len(lows)) < FORECAST_DAYS:
        raise FetchError(f"Weather payload has fewer than {FORECAST_DAYS} daily entries")

    current_info = translate(current.get("weather_code"))
    conditions = CurrentConditions(
        temp_value=_display_number(current.get("temperature_2m")),
        condition=current_info.condition,
        icon=current_info.icon,
        humidity_percent=_display_number(current.get("relative_humidity_2m")),
        wind_speed=_display_number(current.get("wind_speed_10m")),
    )

    days: list[DaySummary] = []
    for idx in range(1, FORECAST_DAYS):
        stamp = str(stamps[idx])
        info = translate(codes[idx])
        days.append(
            DaySummary(
                date=stamp,
                day_label=day_label(stamp),
                high=_display_number(highs[idx]),
                low=_display_number(lows[idx]),
                condition=info.condition,
                icon=info.icon,
            )
        )

    return WeatherSnapshot(current=conditions, daily=days)


def day_label(value: str) -> str:
    try:
        return date.fromisoformat(value[:10]).strftime("%a")
    except ValueError:
        return value


def _display_number(value: object) -> int:
    parsed = as_float(value)
    if parsed is None or not math.isfinite(parsed):
        raise FetchError(f"Weather payload has a non-numeric value: {value!r}")
    # Ties round toward +inf (-2.5 -> -2).
    return math.floor(parsed + 0.5)
