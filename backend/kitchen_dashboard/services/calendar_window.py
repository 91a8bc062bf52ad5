"""Local-day query windows for the calendar provider.

Every boundary is built as a zoned datetime on its own calendar date, so a
window that spans a daylight-saving transition carries two different UTC
offsets, each correct for its endpoint.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from kitchen_dashboard.errors import InvalidTimezoneError
from kitchen_dashboard.schemas import TimeWindow

END_OF_DAY = time(23, 59, 59)
WEEK_DAYS = 7


def get_zone(tz_name: str) -> ZoneInfo:
    """Return a ZoneInfo for an IANA identifier or raise InvalidTimezoneError."""
    if not tz_name or not tz_name.strip():
        raise InvalidTimezoneError(tz_name)
    try:
        return ZoneInfo(tz_name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise InvalidTimezoneError(tz_name) from exc


def local_today(zone: ZoneInfo, now: datetime | None = None) -> date:
    if now is None:
        return datetime.now(tz=zone).date()
    if now.tzinfo is None or now.tzinfo.utcoffset(now) is None:
        return now.date()
    return now.astimezone(zone).date()


def zoned_boundary(day: date, at: time, zone: ZoneInfo) -> str:
    return datetime.combine(day, at, tzinfo=zone).isoformat(timespec="seconds")


def today_window(tz_name: str, now: datetime | None = None) -> TimeWindow:
    zone = get_zone(tz_name)
    today = local_today(zone, now)
    return TimeWindow(
        start_instant=zoned_boundary(today, time.min, zone),
        end_instant=zoned_boundary(today, END_OF_DAY, zone),
    )


def week_window(tz_name: str, now: datetime | None = None) -> TimeWindow:
    """Seven days starting tomorrow; today's events belong to `today_window`."""
    zone = get_zone(tz_name)
    today = local_today(zone, now)
    return TimeWindow(
        start_instant=zoned_boundary(today + timedelta(days=1), time.min, zone),
        end_instant=zoned_boundary(today + timedelta(days=WEEK_DAYS), END_OF_DAY, zone),
    )
