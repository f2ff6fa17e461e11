"""OpenWeatherMap current-weather adapter for the dashboard sidebar."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import httpx

from ._http import get_json
from .errors import ConfigError, FetchError

logger = logging.getLogger(__name__)

OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"


@dataclass
class WeatherReport:
    city: str
    temp_c: float
    humidity: float
    description: str
    observed_at: int | None = None  # epoch seconds from the provider

    @property
    def summary(self) -> str:
        return f"{self.city}: {self.description}, {self.temp_c:.1f}°C, {self.humidity:.0f}% humidity"


class OpenWeatherAdapter:
    def __init__(self, api_key: str, timeout: float = 10.0, client: httpx.Client | None = None) -> None:
        self.api_key = api_key
        self.client = client or httpx.Client(timeout=timeout)

    def fetch_weather(self, city: str) -> WeatherReport:
        """Current conditions for *city* in metric units."""
        if not self.api_key:
            raise ConfigError("OPENWEATHER_API_KEY missing – check your environment variables")
        try:
            body: Any = get_json(
                self.client,
                OPENWEATHER_URL,
                params={"q": city, "appid": self.api_key, "units": "metric"},
                label="OpenWeatherMap",
            )
        except FetchError as exc:
            raise FetchError(f"Failed to fetch weather data: {exc}", endpoint="weather") from exc

        try:
            main = body["main"]
            conditions = body.get("weather") or [{}]
            return WeatherReport(
                city=str(body.get("name") or city),
                temp_c=float(main["temp"]),
                humidity=float(main["humidity"]),
                description=str(conditions[0].get("description", "")),
                observed_at=body.get("dt"),
            )
        except (KeyError, TypeError, ValueError, AttributeError, IndexError) as exc:
            raise FetchError(f"Failed to fetch weather data: malformed payload ({exc})", endpoint="weather") from exc

    def fetch_cities(self, cities: Iterable[str]) -> dict[str, WeatherReport | str]:
        """Current conditions per city; a city that fails maps to its error text.

        A missing API key fails every city alike, so ``ConfigError`` is
        raised once instead.
        """
        if not self.api_key:
            raise ConfigError("OPENWEATHER_API_KEY missing – check your environment variables")
        results: dict[str, WeatherReport | str] = {}
        for city in cities:
            try:
                results[city] = self.fetch_weather(city)
            except FetchError as exc:
                logger.warning("Weather for %s unavailable: %s", city, exc)
                results[city] = str(exc)
        return results

