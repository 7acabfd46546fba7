from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, timezone
import re

from weather_bot.models.weather_model import CityCandidate, Coordinates, DayPage

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

class Subscription(BaseModel):
    """
    Daily push subscription. `time` is None while the row awaits the
    second phase of the setup (the notification time).
    """
    chat_id: int
    city_name: str
    coordinates: Coordinates
    time: Optional[str] = None  # "HH:MM" UTC
    language: str
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("time")
    @classmethod
    def _hh_mm(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not TIME_PATTERN.match(value):
            raise ValueError(f"time must be HH:MM, got {value!r}")
        return value

class PendingDisambiguation(BaseModel):
    chat_id: int
    message_id: int
    candidates: List[CityCandidate] = Field(..., min_length=1)
    for_subscription: bool = False
    created_at: datetime = Field(default_factory=utc_now)

class ForecastCacheEntry(BaseModel):
    chat_id: int
    message_id: int
    pages: List[DayPage] = Field(..., min_length=1)
    full_forecast: bool = True
    created_at: datetime = Field(default_factory=utc_now)

class ChatSettings(BaseModel):
    chat_id: int
    full_forecast: bool = True  # forecast verbosity, full by default
    updated_at: datetime = Field(default_factory=utc_now)

class DueSubscription(BaseModel):
    chat_id: int
    coordinates: Coordinates
    language: str

class SweepResult(BaseModel):
    pending_cities: int = 0
    forecasts: int = 0
    subscriptions: int = 0
