from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from kitchen_dashboard.config import Settings
from kitchen_dashboard.errors import DashboardError, ValidationError
from kitchen_dashboard.schemas import CalendarEvent, Location, WeatherSnapshot
from kitchen_dashboard.services.calendar import CalendarService
from kitchen_dashboard.services.calendar_client import GoogleCalendarClient
from kitchen_dashboard.services.calendar_window import get_zone
from kitchen_dashboard.services.location import DeviceLocator, LocationResolver, build_location_resolver
from kitchen_dashboard.services.weather import SUPPORTED_UNITS, WeatherAggregator
from kitchen_dashboard.services.weather_client import WeatherClient


logger = logging.getLogger(__name__)

WEATHER_UNAVAILABLE = "Could not load weather at this time."
EVENTS_UNAVAILABLE = "Could not load events at this time."
RECENT_EVENT_GRACE = timedelta(hours=1)


class RefreshHandle(Protocol):
    async def refresh(self) -> None: ...


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class WeatherPanel:
    resolver: LocationResolver
    aggregator: WeatherAggregator
    unit: str = "celsius"
    location: Location | None = None
    snapshot: WeatherSnapshot | None = None
    error: str | None = None
    _location_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def ensure_location(self) -> Location:
        async with self._location_lock:
            if self.location is None:
                self.location = await self.resolver.resolve()
            return self.location

    async def refresh(self) -> None:
        location = await self.ensure_location()
        unit = self.unit
        try:
            snapshot = await self.aggregator.fetch(location.latitude, location.longitude, unit)
        except DashboardError as exc:
            logger.warning("Weather refresh failed: %s", exc)
            self.error = WEATHER_UNAVAILABLE
            return

        # A unit switch while this fetch was in flight has already queued its own.
        if unit != self.unit:
            return
        self.snapshot = snapshot
        self.error = None

    async def set_unit(self, unit: str) -> None:
        if unit not in SUPPORTED_UNITS:
            raise ValidationError(f"Unsupported unit {unit!r}. Use one of: {list(SUPPORTED_UNITS)}.")
        if unit == self.unit and self.snapshot is not None:
            return
        self.unit = unit
        await self.refresh()

    async def toggle_unit(self) -> None:
        await self.set_unit("fahrenheit" if self.unit == "celsius" else "celsius")


@dataclass
class CalendarSection:
    events: list[CalendarEvent] = field(default_factory=list)
    error: str | None = None
    loaded: bool = False


@dataclass
class CalendarPanel:
    service: CalendarService
    timezone: str
    today: CalendarSection = field(default_factory=CalendarSection)
    week: CalendarSection = field(default_factory=CalendarSection)

    async def refresh(self) -> None:
        today_result, week_result = await asyncio.gather(
            self.service.fetch_today(self.timezone),
            self.service.fetch_week(self.timezone),
            return_exceptions=True,
        )
        _apply_result(self.today, today_result, label="today")
        _apply_result(self.week, week_result, label="week")

    def visible_today(self, now: datetime | None = None) -> list[CalendarEvent]:
        zone = get_zone(self.timezone)
        return filter_recent_events(self.today.events, now=now or datetime.now(tz=zone), zone=zone)


def _apply_result(section: CalendarSection, result: list[CalendarEvent] | BaseException, *, label: str) -> None:
    if isinstance(result, BaseException):
        if not isinstance(result, Exception):
            raise result
        if isinstance(result, DashboardError):
            logger.warning("Calendar %s refresh failed: %s", label, result)
        else:
            logger.error("Calendar %s refresh failed unexpectedly", label, exc_info=result)
        section.error = EVENTS_UNAVAILABLE
        return
    section.events = list(result)
    section.error = None
    section.loaded = True


def filter_recent_events(
    events: Sequence[CalendarEvent],
    *,
    now: datetime,
    zone: ZoneInfo,
    grace: timedelta = RECENT_EVENT_GRACE,
) -> list[CalendarEvent]:
    """Hide timed events that started more than `grace` before `now`.

    All-day events and events without a parseable start stay visible.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=zone)
    cutoff = now - grace
    visible: list[CalendarEvent] = []
    for event in events:
        start = parse_event_start(event.start_date_time, zone)
        if start is None or start > cutoff:
            visible.append(event)
    return visible


def parse_event_start(value: str, zone: ZoneInfo) -> datetime | None:
    """Parse a timed start; date-only (all-day) and empty values return None."""
    if not value or "T" not in value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed


class DashboardRefresher:
    """Refreshes every handle concurrently, on demand and on a fixed interval.

    Overlapping cycles are allowed; `is_refreshing` stays true while any cycle
    is in flight. Stopping cancels the timer only, never a fetch already issued.
    """

    def __init__(
        self,
        handles: Sequence[RefreshHandle],
        *,
        interval_seconds: float = 600,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.handles = tuple(handles)
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.last_updated: datetime | None = None
        self._in_flight = 0
        self._timer: asyncio.Task[None] | None = None
        self._cycles: set[asyncio.Task[Any]] = set()

    @property
    def is_refreshing(self) -> bool:
        return self._in_flight > 0

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def refresh_all(self) -> list[BaseException]:
        self._in_flight += 1
        self.last_updated = self.clock()
        try:
            results = await asyncio.gather(*(handle.refresh() for handle in self.handles), return_exceptions=True)
        finally:
            self._in_flight -= 1

        failures = [result for result in results if isinstance(result, BaseException)]
        for failure in failures:
            logger.error("Refresh handle failed", exc_info=failure)
        return failures

    def start(self) -> None:
        if self.running:
            return
        self._timer = asyncio.get_running_loop().create_task(self._tick())

    async def stop(self) -> None:
        timer, self._timer = self._timer, None
        if timer is None:
            return
        timer.cancel()
        try:
            await timer
        except asyncio.CancelledError:
            pass

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            cycle = asyncio.get_running_loop().create_task(self.refresh_all())
            self._cycles.add(cycle)
            cycle.add_done_callback(self._cycles.discard)

    async def __aenter__(self) -> DashboardRefresher:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()


class DashboardSession:
    """Weather, today's events and the week ahead, each with its own state."""

    def __init__(self, weather: WeatherPanel, calendar: CalendarPanel, *, interval_seconds: float = 600) -> None:
        self.weather = weather
        self.calendar = calendar
        self.refresher = DashboardRefresher([weather, calendar], interval_seconds=interval_seconds)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        timezone: str,
        locator: DeviceLocator | None = None,
        weather_client: WeatherClient | None = None,
        calendar_client: GoogleCalendarClient | None = None,
    ) -> DashboardSession:
        get_zone(timezone)
        weather_client = weather_client or WeatherClient(settings=settings)
        calendar_client = calendar_client or GoogleCalendarClient(settings=settings)
        weather = WeatherPanel(
            resolver=build_location_resolver(settings, weather_client, locator),
            aggregator=WeatherAggregator(client=weather_client),
        )
        calendar = CalendarPanel(service=CalendarService(client=calendar_client), timezone=timezone)
        return cls(weather, calendar, interval_seconds=settings.refresh_interval_seconds)

    async def refresh(self) -> list[BaseException]:
        return await self.refresher.refresh_all()

    def render(self, now: datetime | None = None) -> dict[str, Any]:
        """Plain view model; the today filter is recomputed on every call."""
        location = self.weather.location
        return {
            "location": location.model_dump(by_alias=True) if location else None,
            "unit": self.weather.unit,
            "weather": self.weather.snapshot.model_dump(by_alias=True) if self.weather.snapshot else None,
            "weather_error": self.weather.error,
            "today": [event.model_dump(by_alias=True) for event in self.calendar.visible_today(now)],
            "today_error": self.calendar.today.error,
            "week": [event.model_dump(by_alias=True) for event in self.calendar.week.events],
            "week_error": self.calendar.week.error,
            "last_updated": self.refresher.last_updated.isoformat() if self.refresher.last_updated else None,
            "refreshing": self.refresher.is_refreshing,
        }

    async def __aenter__(self) -> DashboardSession:
        await self.refresh()
        self.refresher.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.refresher.stop()
