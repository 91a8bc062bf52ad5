from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LocationSource = Literal["geolocation", "ip", "env"]
TemperatureUnit = Literal["celsius", "fahrenheit"]
CalendarRange = Literal["today", "week"]


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Location(_WireModel):
    latitude: float
    longitude: float
    city: str | None = None
    country: str | None = None
    source: LocationSource = Field(description="Which fallback tier produced this location.")


class CurrentConditions(_WireModel):
    temp_value: int
    condition: str
    icon: str
    humidity_percent: int
    wind_speed: int


class DaySummary(_WireModel):
    date: str = Field(description="Calendar date, YYYY-MM-DD.")
    day_label: str
    high: int
    low: int
    condition: str
    icon: str


class WeatherSnapshot(_WireModel):
    current: CurrentConditions
    daily: list[DaySummary]


class CalendarEvent(_WireModel):
    id: str
    title: str
    start_date_time: str = Field(description="ISO-8601; date-only for all-day events.")
    end_date_time: str
    color: str


class TimeWindow(_WireModel):
    start_instant: str
    end_instant: str


class GeocodeResult(_WireModel):
    city: str | None = None
    country: str | None = None
