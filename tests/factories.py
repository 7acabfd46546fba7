from datetime import datetime, timedelta, timezone
from typing import List, Optional

from weather_bot.models.base_model import EventKind, IncomingEvent, MessageRef
from weather_bot.models.weather_model import CityCandidate, Coordinates, WeatherSample

CHAT_ID = 42
PARIS = Coordinates(lon=2.3488, lat=48.8534)
DAY_START = datetime(2024, 3, 5, 0, 0, tzinfo=timezone.utc)


def make_sample(timestamp: datetime, tz_offset: int = 0, **overrides) -> WeatherSample:
    data = dict(
        timestamp=timestamp,
        tz_offset=tz_offset,
        temp=10,
        feels_like=8,
        humidity=70,
        pressure=1012,
        visibility=10000,
        wind_speed=3.5,
        wind_deg=180,
        clouds=40,
        pop=0.2,
        description="light rain",
        city_name="Paris",
        country="FR",
        coordinates=PARIS,
    )
    data.update(overrides)
    return WeatherSample(**data)


def three_hourly(start: datetime, count: int, tz_offset: int = 0) -> List[WeatherSample]:
    return [make_sample(start + timedelta(hours=3 * i), tz_offset) for i in range(count)]


def springfields(count: int = 3) -> List[CityCandidate]:
    return [
        CityCandidate(
            name="Springfield",
            state=f"State {i}",
            country="US",
            coordinates=Coordinates(lon=-89.65 - i, lat=39.8 + i),
        )
        for i in range(count)
    ]


# --- events ---

def text_event(text: str, message_id: int = 10, language: str = "en") -> IncomingEvent:
    return IncomingEvent(kind=EventKind.TEXT, chat_id=CHAT_ID, message_id=message_id, text=text, language=language)


def command_event(command: str, message_id: int = 10) -> IncomingEvent:
    return IncomingEvent(kind=EventKind.COMMAND, chat_id=CHAT_ID, message_id=message_id, text=command, language="en")


def reply_event(text: str, reply_text: str, message_id: int = 11, reply_to_id: int = 5) -> IncomingEvent:
    return IncomingEvent(
        kind=EventKind.REPLY,
        chat_id=CHAT_ID,
        message_id=message_id,
        text=text,
        language="en",
        reply_to=MessageRef(message_id=reply_to_id, text=reply_text),
    )


def callback_event(
    data: str, message_text: str = "", message_id: int = 20, reply_to_id: Optional[int] = None
) -> IncomingEvent:
    reply_to = MessageRef(message_id=reply_to_id) if reply_to_id is not None else None
    return IncomingEvent(
        kind=EventKind.CALLBACK,
        chat_id=CHAT_ID,
        message_id=message_id,
        language="en",
        callback_id="cb-1",
        callback_data=data,
        callback_message=MessageRef(message_id=message_id, text=message_text, reply_to=reply_to),
    )
