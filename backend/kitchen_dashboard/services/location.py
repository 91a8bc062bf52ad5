from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, Union

import httpx

from kitchen_dashboard.config import Settings
from kitchen_dashboard.schemas import Location
from kitchen_dashboard.services.weather_client import WeatherClient, as_float


logger = logging.getLogger(__name__)

GEOLOCATION_TIMEOUT_SECONDS = 5.0
GEOLOCATION_MAXIMUM_AGE_SECONDS = 300.0


class PositionUnavailable(Exception):
    pass


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float
    timestamp: datetime | None = None


class DeviceLocator(Protocol):
    async def current_position(self, *, timeout: float, maximum_age: float) -> Position: ...


@dataclass
class ReportedPositionLocator:
    """A position the browser already obtained and reported with the request."""

    latitude: float
    longitude: float
    reported_at: datetime | None = None
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(tz=timezone.utc), repr=False)

    async def current_position(self, *, timeout: float, maximum_age: float) -> Position:
        if not (_valid_coordinate(self.latitude, 90) and _valid_coordinate(self.longitude, 180)):
            raise PositionUnavailable("reported coordinates are out of range")
        if self.reported_at is not None:
            reported_at = self.reported_at
            if reported_at.tzinfo is None:
                reported_at = reported_at.replace(tzinfo=timezone.utc)
            age = (self.clock() - reported_at).total_seconds()
            if age > maximum_age:
                raise PositionUnavailable(f"reported position is {age:.0f}s old")
        return Position(latitude=self.latitude, longitude=self.longitude, timestamp=self.reported_at)


@dataclass(frozen=True)
class Located:
    location: Location


@dataclass(frozen=True)
class Unavailable:
    reason: str


TierResult = Union[Located, Unavailable]


class LocationTier(Protocol):
    name: str

    async def attempt(self) -> TierResult: ...


@dataclass
class DeviceGeolocationTier:
    locator: DeviceLocator | None
    client: WeatherClient
    timeout: float = GEOLOCATION_TIMEOUT_SECONDS
    maximum_age: float = GEOLOCATION_MAXIMUM_AGE_SECONDS
    name: str = "geolocation"

    async def attempt(self) -> TierResult:
        if self.locator is None:
            return Unavailable("device geolocation is not available")

        try:
            position = await asyncio.wait_for(
                self.locator.current_position(timeout=self.timeout, maximum_age=self.maximum_age),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            return Unavailable(f"device geolocation timed out after {self.timeout:g}s")
        except PositionUnavailable as exc:
            return Unavailable(f"device geolocation failed: {exc}")

        city: str | None = None
        country: str | None = None
        try:
            place = await self.client.reverse_geocode(latitude=position.latitude, longitude=position.longitude)
            city, country = place.get("city"), place.get("country")
        except (httpx.HTTPError, ValueError) as exc:
            logger.info("Failed to reverse geocode %.4f,%.4f: %s", position.latitude, position.longitude, exc)

        return Located(
            Location(
                latitude=position.latitude,
                longitude=position.longitude,
                city=city,
                country=country,
                source="geolocation",
            )
        )


@dataclass
class IpGeolocationTier:
    client: WeatherClient
    name: str = "ip"

    async def attempt(self) -> TierResult:
        try:
            payload = await self.client.ip_geolocate()
        except (httpx.HTTPError, ValueError) as exc:
            return Unavailable(f"IP-based geolocation failed: {exc.__class__.__name__}")

        latitude = as_float(payload.get("latitude"))
        longitude = as_float(payload.get("longitude"))
        if latitude is None or longitude is None:
            return Unavailable("IP-based geolocation returned no coordinates")
        if not (_valid_coordinate(latitude, 90) and _valid_coordinate(longitude, 180)):
            return Unavailable("IP-based geolocation returned invalid coordinates")

        return Located(
            Location(
                latitude=latitude,
                longitude=longitude,
                city=payload.get("city") or None,
                country=payload.get("country_name") or None,
                source="ip",
            )
        )


@dataclass
class ConfiguredDefaultTier:
    settings: Settings
    name: str = "env"

    def location(self) -> Location:
        return Location(
            latitude=self.settings.default_latitude,
            longitude=self.settings.default_longitude,
            city=self.settings.default_city,
            country=self.settings.default_country,
            source="env",
        )

    async def attempt(self) -> TierResult:
        return Located(self.location())


class LocationResolver:
    """Try each tier in order; the first one that locates the device wins.

    The configured default closes the chain, so `resolve` always returns.
    """

    def __init__(self, tiers: Sequence[LocationTier], default: ConfiguredDefaultTier) -> None:
        self.tiers = tuple(tiers)
        self.default = default

    async def resolve(self) -> Location:
        for tier in self.tiers:
            try:
                result = await tier.attempt()
            except Exception:  # noqa: BLE001
                logger.warning("Location tier %s raised unexpectedly", tier.name, exc_info=True)
                continue

            if isinstance(result, Located):
                logger.info("Location resolved via %s tier", tier.name)
                return result.location
            logger.info("Location tier %s unavailable: %s", tier.name, result.reason)

        logger.info("Falling back to configured default location")
        return self.default.location()


def build_location_resolver(
    settings: Settings, client: WeatherClient, locator: DeviceLocator | None = None
) -> LocationResolver:
    return LocationResolver(
        tiers=[DeviceGeolocationTier(locator=locator, client=client), IpGeolocationTier(client=client)],
        default=ConfiguredDefaultTier(settings=settings),
    )


def _valid_coordinate(value: float, bound: float) -> bool:
    return math.isfinite(value) and -bound <= value <= bound
