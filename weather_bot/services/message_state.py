"""
Conversation state embedded in the text of the bot's own messages.

The platform echoes a message's text back when the user replies to it
or presses one of its buttons, so each prompt or card carries one state
line of the form

    <Tag> v<version> key=value ...

Prompts carry it as their first line, cards as their last line.
"""
import logging
import re
from typing import Annotated, Literal, Optional, Union

import pydantic
from pydantic import BaseModel, Field, TypeAdapter

from weather_bot.core.errors import StateIntegrityError
from weather_bot.core.logger import logs
from weather_bot.models.store_model import TIME_PATTERN
from weather_bot.models.weather_model import Coordinates

STATE_VERSION = 1
_VERSION = re.compile(r"v(\d+)", re.ASCII)


class AddCityState(BaseModel):
    """Prompt asking for the city of a new subscription."""
    tag: Literal["AddCity"] = "AddCity"


class AddTimeState(BaseModel):
    """Prompt asking for the notification time of a new subscription."""
    tag: Literal["AddTime"] = "AddTime"
    coordinates: Coordinates


class WeatherState(BaseModel):
    """Current-weather card, source of the forecast request."""
    tag: Literal["Weather"] = "Weather"
    coordinates: Coordinates


class SubscriptionState(BaseModel):
    """Subscription card, source of the cancellation."""
    tag: Literal["Subscription"] = "Subscription"
    coordinates: Coordinates
    time: str = Field(..., pattern=TIME_PATTERN.pattern)


MessageState = Annotated[
    Union[AddCityState, AddTimeState, WeatherState, SubscriptionState],
    Field(discriminator="tag"),
]
_STATE_ADAPTER = TypeAdapter(MessageState)
TAGS = ("AddCity", "AddTime", "Weather", "Subscription")


def encode_state(state: MessageState) -> str:
    parts = [state.tag, f"v{STATE_VERSION}"]
    coordinates = getattr(state, "coordinates", None)
    if coordinates is not None:
        parts.append(f"lon={coordinates.lon:.6f}")
        parts.append(f"lat={coordinates.lat:.6f}")
    time = getattr(state, "time", None)
    if time is not None:
        parts.append(f"time={time}")
    return " ".join(parts)


def _parse_line(line: str) -> Optional[MessageState]:
    parts = line.split()
    if len(parts) < 2 or parts[0] not in TAGS:
        return None
    version = _VERSION.fullmatch(parts[1])
    if version is None or int(version.group(1)) != STATE_VERSION:
        return None

    fields = {}
    for part in parts[2:]:
        key, sep, value = part.partition("=")
        if not sep or not value or key in fields:
            raise StateIntegrityError(f"bad state field {part!r} in {parts[0]} line")
        fields[key] = value

    raw = {"tag": parts[0]}
    if "lon" in fields or "lat" in fields:
        raw["coordinates"] = {"lon": fields.pop("lon", None), "lat": fields.pop("lat", None)}
    if "time" in fields:
        raw["time"] = fields.pop("time")
    if fields:
        raise StateIntegrityError(f"unexpected state fields {sorted(fields)} in {parts[0]} line")

    try:
        return _STATE_ADAPTER.validate_python(raw)
    except pydantic.ValidationError as e:
        raise StateIntegrityError(f"malformed {parts[0]} state: {e.error_count()} errors") from e


def decode_state(text: Optional[str]) -> Optional[MessageState]:
    """
    State carried by a message, or None when the message carries none.
    A recognized line with a broken payload raises StateIntegrityError.
    """
    lines = [line.strip() for line in (text or "").strip().splitlines() if line.strip()]
    if not lines:
        return None

    candidates = [lines[0]] if len(lines) == 1 else [lines[0], lines[-1]]
    for line in candidates:
        state = _parse_line(line)
        if state is not None:
            logs.log(logging.DEBUG, f"Decoded message state {state.tag}")
            return state
    return None
