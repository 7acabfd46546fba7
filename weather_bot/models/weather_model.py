from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime, date, timedelta, timezone

# Coordinates travel through message text with this precision
COORDINATE_DECIMALS = 6

class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    lon: float = Field(..., ge=-180, le=180)
    lat: float = Field(..., ge=-90, le=90)

    @field_validator("lon", "lat")
    @classmethod
    def _round(cls, value: float) -> float:
        return round(value, COORDINATE_DECIMALS)

class CityCandidate(BaseModel):
    """One geocoding match for a free-text city query."""
    name: str
    country: str
    state: Optional[str] = None
    coordinates: Coordinates

class WeatherSample(BaseModel):
    """One instant of weather for a city, as returned by the provider."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime  # UTC instant
    tz_offset: int  # seconds east of UTC for the city
    temp: int
    feels_like: int
    humidity: Optional[int] = None
    pressure: Optional[int] = None  # hPa
    visibility: Optional[int] = None  # metres
    wind_speed: Optional[float] = None
    wind_deg: Optional[int] = None
    wind_gust: Optional[float] = None
    clouds: Optional[int] = None  # percent
    pop: Optional[float] = None  # probability of precipitation, 0..1
    rain: Optional[float] = None  # mm over the sample period
    snow: Optional[float] = None
    description: str = Field(..., min_length=1)
    city_name: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    coordinates: Coordinates
    sunrise: Optional[datetime] = None  # UTC instant
    sunset: Optional[datetime] = None

    @field_validator("timestamp", "sunrise", "sunset")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def to_local(self, instant: datetime) -> datetime:
        """Wall-clock time of `instant` in the city (naive)."""
        return (instant + timedelta(seconds=self.tz_offset)).replace(tzinfo=None)

    @property
    def local_time(self) -> datetime:
        return self.to_local(self.timestamp)

    @property
    def local_date(self) -> date:
        return self.local_time.date()

class DayPage(BaseModel):
    """The samples of one local calendar day, in chronological order."""
    model_config = ConfigDict(frozen=True)

    date: date
    city_name: str
    country: str
    coordinates: Coordinates
    tz_offset: int
    samples: List[WeatherSample] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _same_day(self) -> "DayPage":
        for sample in self.samples:
            if sample.local_date != self.date:
                raise ValueError(
                    f"sample {sample.timestamp.isoformat()} is not on page date {self.date.isoformat()}"
                )
        return self
