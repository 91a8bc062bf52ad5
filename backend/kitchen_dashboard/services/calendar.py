from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from kitchen_dashboard.config import Settings, get_settings
from kitchen_dashboard.errors import ConfigError
from kitchen_dashboard.schemas import CalendarEvent, TimeWindow
from kitchen_dashboard.services.calendar_client import GoogleCalendarClient, load_service_account_info
from kitchen_dashboard.services.calendar_window import today_window, week_window


logger = logging.getLogger(__name__)

EVENT_COLORS = (
    "bg-blue-500",
    "bg-green-500",
    "bg-purple-500",
    "bg-orange-500",
    "bg-pink-500",
    "bg-teal-500",
)
UNTITLED_EVENT = "Untitled Event"


@dataclass
class CalendarService:
    client: GoogleCalendarClient
    settings_provider: Callable[[], Settings] = get_settings
    clock: Callable[[], datetime | None] = lambda: None

    async def fetch_today(self, timezone: str) -> list[CalendarEvent]:
        window = today_window(timezone, now=self.clock())
        return await self._fetch_window(window)

    async def fetch_week(self, timezone: str) -> list[CalendarEvent]:
        window = week_window(timezone, now=self.clock())
        return await self._fetch_window(window)

    async def _fetch_window(self, window: TimeWindow) -> list[CalendarEvent]:
        # Calendar configuration is read at request time, never at startup.
        settings = self.settings_provider()
        info = load_service_account_info(settings)
        calendar_id = settings.google_calendar_id
        if not calendar_id:
            raise ConfigError("GOOGLE_CALENDAR_ID not set in environment variables")

        token = await self.client.access_token(info)
        items = await self.client.list_events(calendar_id=calendar_id, window=window, token=token)
        logger.info(
            "Fetched %d calendar events for %s .. %s", len(items), window.start_instant, window.end_instant
        )
        return normalize_events(items)


def normalize_events(items: Iterable[dict]) -> list[CalendarEvent]:
    return [normalize_event(item, index) for index, item in enumerate(items)]


def normalize_event(item: dict, index: int) -> CalendarEvent:
    return CalendarEvent(
        id=str(item.get("id") or f"event-{index}"),
        title=str(item.get("summary") or UNTITLED_EVENT),
        start_date_time=_event_time(item.get("start")),
        end_date_time=_event_time(item.get("end")),
        color=event_color(index),
    )


def event_color(index: int) -> str:
    return EVENT_COLORS[index % len(EVENT_COLORS)]


def _event_time(value: object) -> str:
    """Timed events carry `dateTime`; all-day events only a `date`."""
    if not isinstance(value, dict):
        return ""
    return str(value.get("dateTime") or value.get("date") or "")
