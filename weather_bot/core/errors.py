"""
Error taxonomy shared by every component boundary.
Providers raise UPSTREAM, repositories STORE, codecs VALIDATION or
STATE_INTEGRITY, the transport TRANSPORT. Only the dispatcher turns them
into user-visible messages.
"""
from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    UPSTREAM = "UPSTREAM"
    STORE = "STORE"
    STATE_INTEGRITY = "STATE_INTEGRITY"
    TRANSPORT = "TRANSPORT"


class BotError(Exception):
    kind: ErrorKind = ErrorKind.STATE_INTEGRITY

    def __init__(self, message: str, message_key: str | None = None):
        super().__init__(message)
        self.message_key = message_key


class ValidationError(BotError):
    """Rejected input; reported to the user with its own message."""
    kind = ErrorKind.VALIDATION


class UpstreamError(BotError):
    kind = ErrorKind.UPSTREAM


class StoreError(BotError):
    kind = ErrorKind.STORE


class StateIntegrityError(BotError):
    """Expected state is missing or cannot be parsed back."""
    kind = ErrorKind.STATE_INTEGRITY


class TransportError(BotError):
    kind = ErrorKind.TRANSPORT
