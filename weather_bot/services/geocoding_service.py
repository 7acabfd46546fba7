import logging
import re
from typing import List, Optional

import pydantic

from weather_bot.core.config import settings
from weather_bot.core.errors import UpstreamError, ValidationError
from weather_bot.core.logger import logs
from weather_bot.models.weather_model import CityCandidate, Coordinates
from weather_bot.services.openweather_client import OpenWeatherClient

MAX_CITY_NAME_LENGTH = 25
# Letters of any script, spaces, apostrophes and hyphens
CITY_NAME_PATTERN = re.compile(r"^(?:[^\W\d_]|[ '’\-])+$")


def validate_city_name(text: Optional[str]) -> str:
    """Checked before any network call; returns the stripped name."""
    name = (text or "").strip()
    if (
        not name
        or len(name) > MAX_CITY_NAME_LENGTH
        or not CITY_NAME_PATTERN.match(name)
    ):
        raise ValidationError(f"invalid city name {name!r}", message_key="invalidCityName")
    return name


class GeocodingService(OpenWeatherClient):
    """Free-text city name -> ordered list of CityCandidates."""

    def __init__(self, limit: Optional[int] = None, **kwargs):
        super().__init__(**kwargs)
        self.limit = limit or settings.GEOCODING_LIMIT

    async def search(self, query: str, language: str) -> List[CityCandidate]:
        name = validate_city_name(query)
        logs.log(logging.INFO, f"Geocoding city: {name}")
        raw = await self._get_json("/geo/1.0/direct", {"q": name, "limit": self.limit})
        if not isinstance(raw, list):
            raise UpstreamError("geocoding payload is not a list")

        candidates = []
        try:
            for item in raw:
                local_names = item.get("local_names") or {}
                candidates.append(CityCandidate(
                    name=local_names.get(language) or item["name"],
                    country=item["country"],
                    state=item.get("state"),
                    coordinates=Coordinates(lon=item["lon"], lat=item["lat"]),
                ))
        except (KeyError, TypeError, AttributeError, pydantic.ValidationError) as e:
            logs.log(logging.ERROR, f"Malformed geocoding result: {str(e)}")
            raise UpstreamError("malformed geocoding result") from e

        logs.log(logging.INFO, f"Geocoding '{name}' returned {len(candidates)} candidates")
        return candidates
