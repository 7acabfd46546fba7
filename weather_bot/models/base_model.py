from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum

# --- Enums ---
class EventKind(str, Enum):
    COMMAND = "COMMAND"
    TEXT = "TEXT"
    REPLY = "REPLY"
    CALLBACK = "CALLBACK"

# --- Inbound ---
class MessageRef(BaseModel):
    """A chat message as echoed back by the platform."""
    message_id: int
    text: str = ""
    reply_to: Optional["MessageRef"] = None

class IncomingEvent(BaseModel):
    kind: EventKind
    chat_id: int
    message_id: int = Field(..., description="Id of the user message, or of the message carrying the pressed button")
    text: str = ""
    language: Optional[str] = None
    reply_to: Optional[MessageRef] = None
    callback_id: Optional[str] = None
    callback_data: Optional[str] = None
    callback_message: Optional[MessageRef] = None

    @property
    def command(self) -> str:
        """'/help@MyBot args' -> '/help'"""
        head = self.text.split(maxsplit=1)[0] if self.text else ""
        return head.split("@", 1)[0]

# --- Outbound ---
class InlineButton(BaseModel):
    text: str
    token: str = Field(..., max_length=64)  # platform limit for callback data

Keyboard = List[List[InlineButton]]

class BotCommand(BaseModel):
    command: str
    description: str
