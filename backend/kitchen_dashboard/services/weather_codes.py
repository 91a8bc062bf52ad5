from __future__ import annotations

from typing import NamedTuple


class WeatherCondition(NamedTuple):
    condition: str
    icon: str


UNKNOWN_CONDITION = WeatherCondition("Unknown", "❓")

WEATHER_CODE_MAP: dict[int, WeatherCondition] = {
    0: WeatherCondition("Clear", "☀️"),
    1: WeatherCondition("Mainly Clear", "🌤️"),
    2: WeatherCondition("Partly Cloudy", "⛅"),
    3: WeatherCondition("Overcast", "☁️"),
    45: WeatherCondition("Foggy", "🌫️"),
    48: WeatherCondition("Foggy", "🌫️"),
    51: WeatherCondition("Light Drizzle", "🌦️"),
    53: WeatherCondition("Drizzle", "🌦️"),
    55: WeatherCondition("Heavy Drizzle", "🌦️"),
    61: WeatherCondition("Light Rain", "🌧️"),
    63: WeatherCondition("Rain", "🌧️"),
    65: WeatherCondition("Heavy Rain", "🌧️"),
    71: WeatherCondition("Light Snow", "🌨️"),
    73: WeatherCondition("Snow", "❄️"),
    75: WeatherCondition("Heavy Snow", "❄️"),
    77: WeatherCondition("Snow Grains", "🌨️"),
    80: WeatherCondition("Light Showers", "🌦️"),
    81: WeatherCondition("Showers", "🌧️"),
    82: WeatherCondition("Heavy Showers", "🌧️"),
    85: WeatherCondition("Light Snow Showers", "🌨️"),
    86: WeatherCondition("Snow Showers", "❄️"),
    95: WeatherCondition("Thunderstorm", "⛈️"),
    96: WeatherCondition("Thunderstorm with Hail", "⛈️"),
    99: WeatherCondition("Thunderstorm with Hail", "⛈️"),
}


def translate(code: object) -> WeatherCondition:
    """Map a WMO weather code to its label and icon; unknown codes never raise."""
    if isinstance(code, bool):
        return UNKNOWN_CONDITION
    if isinstance(code, float) and code.is_integer():
        code = int(code)
    if not isinstance(code, int):
        return UNKNOWN_CONDITION
    return WEATHER_CODE_MAP.get(code, UNKNOWN_CONDITION)
