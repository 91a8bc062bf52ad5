import httpx
from fastapi.testclient import TestClient

from kitchen_dashboard import main as main_module
from kitchen_dashboard.errors import AuthError, ConfigError, FetchError, InvalidTimezoneError
from kitchen_dashboard.schemas import CalendarEvent, CurrentConditions, DaySummary, WeatherSnapshot


def _snapshot() -> WeatherSnapshot:
    days = [
        DaySummary(date=f"2025-11-0{index + 4}", day_label="Tue", high=24, low=13, condition="Clear", icon="☀️")
        for index in range(6)
    ]
    days.append(DaySummary(date="2025-11-10", day_label="Mon", high=22, low=13, condition="Rain", icon="🌧️"))
    return WeatherSnapshot(
        current=CurrentConditions(temp_value=22, condition="Partly Cloudy", icon="⛅", humidity_percent=64, wind_speed=8),
        daily=days,
    )


class _FakeWeatherAggregator:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[float, float, str]] = []

    async def fetch(self, latitude: float, longitude: float, unit: str = "celsius") -> WeatherSnapshot:
        self.calls.append((latitude, longitude, unit))
        if self.error:
            raise self.error
        return _snapshot()


class _FakeCalendarService:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def fetch_today(self, timezone: str) -> list[CalendarEvent]:
        return self._events("today", timezone)

    async def fetch_week(self, timezone: str) -> list[CalendarEvent]:
        return self._events("week", timezone)

    def _events(self, kind: str, timezone: str) -> list[CalendarEvent]:
        self.calls.append((kind, timezone))
        if self.error:
            raise self.error
        return [
            CalendarEvent(
                id="abc",
                title="Design Review",
                start_date_time="2025-06-01T11:00:00-07:00",
                end_date_time="2025-06-01T12:00:00-07:00",
                color="bg-blue-500",
            )
        ]


class _FakeWeatherClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    async def close(self) -> None:
        return None

    async def reverse_geocode(self, latitude: float, longitude: float) -> dict:
        if self.error:
            raise self.error
        return {"city": "Oakland", "country": "United States"}

    async def ip_geolocate(self) -> dict:
        if self.error:
            raise self.error
        return {"latitude": 45.5, "longitude": -122.6, "city": "Portland", "country_name": "United States"}


def test_weather_route_returns_snapshot(monkeypatch) -> None:
    aggregator = _FakeWeatherAggregator()
    monkeypatch.setattr(main_module, "weather_aggregator", aggregator)
    client = TestClient(main_module.app)

    response = client.get("/api/weather", params={"lat": "37.77", "lon": "-122.42", "unit": "fahrenheit"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["current"]["tempValue"] == 22
    assert payload["current"]["humidityPercent"] == 64
    assert len(payload["daily"]) == 7
    assert payload["daily"][0]["dayLabel"] == "Tue"
    assert aggregator.calls == [(37.77, -122.42, "fahrenheit")]


def test_weather_route_defaults_to_celsius(monkeypatch) -> None:
    aggregator = _FakeWeatherAggregator()
    monkeypatch.setattr(main_module, "weather_aggregator", aggregator)
    client = TestClient(main_module.app)

    client.get("/api/weather", params={"lat": "1", "lon": "2"})

    assert aggregator.calls == [(1.0, 2.0, "celsius")]


def test_weather_route_requires_coordinates(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "weather_aggregator", _FakeWeatherAggregator())
    client = TestClient(main_module.app)

    assert client.get("/api/weather", params={"lat": "1"}).status_code == 400
    assert client.get("/api/weather", params={"lat": "north", "lon": "2"}).status_code == 400
    response = client.get("/api/weather")
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing latitude or longitude"


def test_weather_route_hides_upstream_detail(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "weather_aggregator", _FakeWeatherAggregator(FetchError("secret upstream detail")))
    client = TestClient(main_module.app)

    response = client.get("/api/weather", params={"lat": "1", "lon": "2"})

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to fetch weather"}


def test_calendar_route_dispatches_by_type(monkeypatch) -> None:
    service = _FakeCalendarService()
    monkeypatch.setattr(main_module, "calendar_service", service)
    client = TestClient(main_module.app)

    today = client.get("/api/calendar", params={"type": "today", "timezone": "America/Los_Angeles"})
    week = client.get("/api/calendar", params={"type": "week", "timezone": "Europe/London"})

    assert today.status_code == 200
    assert today.json()[0] == {
        "id": "abc",
        "title": "Design Review",
        "startDateTime": "2025-06-01T11:00:00-07:00",
        "endDateTime": "2025-06-01T12:00:00-07:00",
        "color": "bg-blue-500",
    }
    assert week.status_code == 200
    assert service.calls == [("today", "America/Los_Angeles"), ("week", "Europe/London")]


def test_calendar_route_validates_parameters(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "calendar_service", _FakeCalendarService())
    client = TestClient(main_module.app)

    missing_tz = client.get("/api/calendar", params={"type": "today"})
    bad_type = client.get("/api/calendar", params={"type": "month", "timezone": "UTC"})
    no_type = client.get("/api/calendar", params={"timezone": "UTC"})

    assert missing_tz.status_code == 400
    assert missing_tz.json()["detail"] == "Missing timezone parameter"
    assert bad_type.status_code == 400
    assert no_type.status_code == 400


def test_calendar_route_rejects_unknown_timezone(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "calendar_service", _FakeCalendarService(InvalidTimezoneError("Mars/Base")))
    client = TestClient(main_module.app)

    response = client.get("/api/calendar", params={"type": "today", "timezone": "Mars/Base"})

    assert response.status_code == 400


def test_calendar_route_reports_generic_failure(monkeypatch) -> None:
    client = TestClient(main_module.app)

    for error in (AuthError("bad key"), ConfigError("no calendar id"), FetchError("down")):
        monkeypatch.setattr(main_module, "calendar_service", _FakeCalendarService(error))
        response = client.get("/api/calendar", params={"type": "week", "timezone": "UTC"})
        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to fetch calendar events"}


def test_geocode_route(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "weather_client", _FakeWeatherClient())
    client = TestClient(main_module.app)

    response = client.get("/api/geocode", params={"lat": "37.8", "lon": "-122.27"})

    assert response.status_code == 200
    assert response.json() == {"city": "Oakland", "country": "United States"}
    assert client.get("/api/geocode", params={"lon": "1"}).status_code == 400


def test_geocode_route_upstream_failure(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "weather_client", _FakeWeatherClient(httpx.ConnectError("down")))
    client = TestClient(main_module.app)

    response = client.get("/api/geocode", params={"lat": "37.8", "lon": "-122.27"})

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to reverse geocode"}


def test_location_route_prefers_reported_position(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "weather_client", _FakeWeatherClient())
    client = TestClient(main_module.app)

    reported = client.get("/api/location", params={"lat": "37.8", "lon": "-122.27"})
    by_ip = client.get("/api/location")

    assert reported.json()["source"] == "geolocation"
    assert reported.json()["city"] == "Oakland"
    assert by_ip.json()["source"] == "ip"
    assert by_ip.json()["city"] == "Portland"


def test_location_route_ignores_unusable_device_reports(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "weather_client", _FakeWeatherClient())
    client = TestClient(main_module.app)

    cases = [
        ({"lat": "95", "lon": "10"}, "ip"),
        ({"lat": "abc", "lon": "10"}, "ip"),
        ({"lat": "37.8", "lon": "-122.27", "reported_at": "yesterday"}, "geolocation"),
    ]
    for params, source in cases:
        response = client.get("/api/location", params=params)
        assert response.status_code == 200
        assert response.json()["source"] == source

    out_of_range = client.get("/api/location", params={"lat": "95", "lon": "10"})
    assert out_of_range.json()["city"] == "Portland"


def test_location_route_drops_stale_device_reports(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "weather_client", _FakeWeatherClient())
    client = TestClient(main_module.app)

    response = client.get(
        "/api/location", params={"lat": "37.8", "lon": "-122.27", "reported_at": "2020-01-01T00:00:00Z"}
    )

    assert response.status_code == 200
    assert response.json()["source"] == "ip"


def test_location_route_never_fails(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "weather_client", _FakeWeatherClient(httpx.ConnectError("down")))
    client = TestClient(main_module.app)

    response = client.get("/api/location")

    assert response.status_code == 200
    assert response.json()["source"] == "env"


def test_health_route() -> None:
    client = TestClient(main_module.app)

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
