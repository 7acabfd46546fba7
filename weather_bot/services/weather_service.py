import logging
from datetime import datetime, timezone
from typing import List, Optional

import pydantic

from weather_bot.core.errors import UpstreamError
from weather_bot.core.logger import logs
from weather_bot.models.weather_model import Coordinates, WeatherSample
from weather_bot.services.openweather_client import OpenWeatherClient


def _utc(seconds: Optional[int]) -> Optional[datetime]:
    return None if seconds is None else datetime.fromtimestamp(seconds, tz=timezone.utc)


def _rounded(value) -> Optional[int]:
    return None if value is None else round(value)


class WeatherService(OpenWeatherClient):
    """
    Current weather and the 5 day / 3 hour forecast from OpenWeather.
    Samples carry the requested coordinates so the text state and the
    stores keep one key per city.
    """

    def _parse_sample(self, item: dict, coordinates: Coordinates, city: dict, period: str) -> WeatherSample:
        main = item["main"]
        wind = item.get("wind") or {}
        return WeatherSample(
            timestamp=_utc(item["dt"]),
            tz_offset=city["timezone"],
            temp=round(main["temp"]),
            feels_like=round(main["feels_like"]),
            humidity=main.get("humidity"),
            pressure=main.get("pressure"),
            visibility=item.get("visibility"),
            wind_speed=wind.get("speed"),
            wind_deg=wind.get("deg"),
            wind_gust=wind.get("gust"),
            clouds=(item.get("clouds") or {}).get("all"),
            pop=item.get("pop"),
            rain=(item.get("rain") or {}).get(period),
            snow=(item.get("snow") or {}).get(period),
            description=item["weather"][0]["description"],
            city_name=city["name"],
            country=city["country"],
            coordinates=coordinates,
            sunrise=_utc(city.get("sunrise")),
            sunset=_utc(city.get("sunset")),
        )

    async def get_current_weather(self, coordinates: Coordinates, language: str) -> WeatherSample:
        logs.log(logging.INFO, f"Fetching current weather at {coordinates.lat}, {coordinates.lon}")
        raw = await self._get_json("/data/2.5/weather", {
            "lat": coordinates.lat,
            "lon": coordinates.lon,
            "units": "metric",
            "lang": language,
        })
        try:
            raw_sys = raw.get("sys") or {}
            city = {
                "name": raw["name"],
                "country": raw_sys["country"],
                "timezone": raw["timezone"],
                "sunrise": raw_sys.get("sunrise"),
                "sunset": raw_sys.get("sunset"),
            }
            return self._parse_sample(raw, coordinates, city, period="1h")
        except (KeyError, IndexError, TypeError, AttributeError, pydantic.ValidationError) as e:
            logs.log(logging.ERROR, f"Malformed current weather payload: {str(e)}")
            raise UpstreamError("malformed current weather payload") from e

    async def get_forecast(self, coordinates: Coordinates, language: str) -> List[WeatherSample]:
        """Raw 3-hourly samples in provider order; bucketing is the caller's job."""
        logs.log(logging.INFO, f"Fetching forecast at {coordinates.lat}, {coordinates.lon}")
        raw = await self._get_json("/data/2.5/forecast", {
            "lat": coordinates.lat,
            "lon": coordinates.lon,
            "units": "metric",
            "lang": language,
        })
        try:
            city = raw["city"]
            samples = [
                self._parse_sample(item, coordinates, city, period="3h")
                for item in raw["list"]
            ]
        except (KeyError, IndexError, TypeError, AttributeError, pydantic.ValidationError) as e:
            logs.log(logging.ERROR, f"Malformed forecast payload: {str(e)}")
            raise UpstreamError("malformed forecast payload") from e

        if not samples:
            raise UpstreamError("forecast payload has no samples")
        logs.log(logging.INFO, f"Forecast for {city['name']}: {len(samples)} samples")
        return samples
