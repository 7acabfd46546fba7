"""
Compact action tokens carried by inline buttons.

    F        forecast for the city of the message shown
    C:<i>    pick candidate i for a one-off lookup
    CS:<i>   pick candidate i for a subscription
    FI:<i>   go to forecast page i
    RS       cancel the subscription of the message shown
"""
import logging
import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from weather_bot.core.logger import logs

SEPARATOR = ":"
_INDEX = re.compile(r"\d+", re.ASCII)


class TokenAction(str, Enum):
    FORECAST = "F"
    CITY = "C"
    CITY_SUBSCRIPTION = "CS"
    FORECAST_PAGE = "FI"
    REMOVE_SUBSCRIPTION = "RS"

    @property
    def indexed(self) -> bool:
        return self in _INDEXED


_INDEXED = {TokenAction.CITY, TokenAction.CITY_SUBSCRIPTION, TokenAction.FORECAST_PAGE}


class DecodeStatus(str, Enum):
    OK = "OK"
    UNRECOGNIZED = "UNRECOGNIZED"  # unknown tag, stale button: ignore quietly
    MALFORMED = "MALFORMED"  # known tag, bad payload: report


class CallbackToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: TokenAction
    index: Optional[int] = Field(default=None, ge=0)


class DecodeResult(BaseModel):
    status: DecodeStatus
    token: Optional[CallbackToken] = None

    @property
    def ok(self) -> bool:
        return self.status == DecodeStatus.OK


def encode(action: TokenAction, index: Optional[int] = None) -> str:
    if action.indexed:
        if index is None or index < 0:
            raise ValueError(f"{action.value} needs a non-negative index, got {index!r}")
        return f"{action.value}{SEPARATOR}{index}"
    if index is not None:
        raise ValueError(f"{action.value} takes no index")
    return action.value


def decode(data: Optional[str]) -> DecodeResult:
    """Parse button data. Never raises: the status tells the caller what to do."""
    segments = (data or "").split(SEPARATOR)
    try:
        action = TokenAction(segments[0])
    except ValueError:
        logs.log(logging.DEBUG, f"Ignoring unrecognized callback token {data!r}")
        return DecodeResult(status=DecodeStatus.UNRECOGNIZED)

    payload = segments[1:]
    if not action.indexed:
        if payload:
            return _malformed(data)
        return DecodeResult(status=DecodeStatus.OK, token=CallbackToken(action=action))

    if len(payload) != 1 or not _INDEX.fullmatch(payload[0]):
        return _malformed(data)
    return DecodeResult(
        status=DecodeStatus.OK, token=CallbackToken(action=action, index=int(payload[0]))
    )


def _malformed(data: str) -> DecodeResult:
    logs.log(logging.WARNING, f"Malformed callback token {data!r}")
    return DecodeResult(status=DecodeStatus.MALFORMED)
