from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from kitchen_dashboard.errors import InvalidTimezoneError
from kitchen_dashboard.services.calendar_window import today_window, week_window


def test_week_window_uses_offset_of_each_boundary_date() -> None:
    window = week_window("America/Los_Angeles", now=datetime(2025, 3, 8, 12, 0, 0))

    assert window.start_instant == "2025-03-09T00:00:00-08:00"
    assert window.end_instant == "2025-03-15T23:59:59-07:00"


def test_today_window_spans_local_day() -> None:
    window = today_window("America/Los_Angeles", now=datetime(2025, 6, 1, 8, 30))

    assert window.start_instant == "2025-06-01T00:00:00-07:00"
    assert window.end_instant == "2025-06-01T23:59:59-07:00"


def test_today_window_on_fall_back_day_keeps_both_offsets() -> None:
    window = today_window("America/New_York", now=datetime(2025, 11, 2, 12, 0))

    assert window.start_instant == "2025-11-02T00:00:00-04:00"
    assert window.end_instant == "2025-11-02T23:59:59-05:00"


def test_aware_now_is_converted_into_the_zone() -> None:
    # 03:00 UTC on the 2nd is still the evening of the 1st in Los Angeles.
    now = datetime(2025, 6, 2, 3, 0, tzinfo=timezone.utc)

    window = today_window("America/Los_Angeles", now=now)

    assert window.start_instant == "2025-06-01T00:00:00-07:00"


def test_week_window_starts_tomorrow_and_spans_seven_days() -> None:
    window = week_window("Asia/Kolkata", now=datetime(2025, 12, 28, 23, 59))

    assert window.start_instant == "2025-12-29T00:00:00+05:30"
    assert window.end_instant == "2026-01-04T23:59:59+05:30"


def test_windows_default_to_current_time_in_zone() -> None:
    zone = ZoneInfo("Europe/Berlin")
    before = datetime.now(tz=zone).date()

    window = today_window("Europe/Berlin")

    after = datetime.now(tz=zone).date()
    assert window.start_instant[:10] in {before.isoformat(), after.isoformat()}
    assert window.start_instant[10:19] == "T00:00:00"


@pytest.mark.parametrize("name", ["Mars/Olympus_Mons", "", "   ", "../etc/passwd"])
def test_unknown_timezone_raises(name: str) -> None:
    with pytest.raises(InvalidTimezoneError):
        today_window(name)
    with pytest.raises(InvalidTimezoneError):
        week_window(name)
