import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from telegram import (
    Bot, BotCommand as TelegramBotCommand, ForceReply, InlineKeyboardButton,
    InlineKeyboardMarkup, ReplyParameters,
)
from telegram.constants import ParseMode
from telegram.error import TelegramError

from weather_bot.core.errors import TransportError
from weather_bot.core.logger import logs
from weather_bot.models.base_model import BotCommand, Keyboard


class ChatTransport(ABC):
    """Outbound side of the chat platform."""

    @abstractmethod
    async def send(
        self, chat_id: int, text: str, keyboard: Optional[Keyboard] = None, reply_to: Optional[int] = None
    ) -> int:
        """Send a message and return its id."""

    @abstractmethod
    async def send_force_reply(self, chat_id: int, text: str) -> int:
        """Send a prompt the user answers by replying to it."""

    @abstractmethod
    async def edit(self, chat_id: int, message_id: int, text: str, keyboard: Optional[Keyboard] = None) -> None:
        """Replace the text; a None keyboard removes the buttons."""

    @abstractmethod
    async def answer_callback(self, callback_id: str) -> None:
        ...

    @abstractmethod
    async def set_commands(self, commands: List[BotCommand], language: Optional[str] = None) -> None:
        ...


def _markup(keyboard: Optional[Keyboard]) -> Optional[InlineKeyboardMarkup]:
    if not keyboard:
        return None
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(button.text, callback_data=button.token) for button in row]
        for row in keyboard
    ])


class TelegramTransport(ChatTransport):
    """ChatTransport over python-telegram-bot's Bot, HTML parse mode."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send(
        self, chat_id: int, text: str, keyboard: Optional[Keyboard] = None, reply_to: Optional[int] = None
    ) -> int:
        try:
            message = await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.HTML,
                reply_markup=_markup(keyboard),
                reply_parameters=ReplyParameters(message_id=reply_to) if reply_to else None,
            )
        except TelegramError as e:
            logs.log(logging.ERROR, f"Failed to send message to chat {chat_id}: {str(e)}")
            raise TransportError(f"send to {chat_id} failed") from e
        return message.message_id

    async def send_force_reply(self, chat_id: int, text: str) -> int:
        try:
            message = await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.HTML,
                reply_markup=ForceReply(selective=True),
            )
        except TelegramError as e:
            logs.log(logging.ERROR, f"Failed to send prompt to chat {chat_id}: {str(e)}")
            raise TransportError(f"prompt to {chat_id} failed") from e
        return message.message_id

    async def edit(self, chat_id: int, message_id: int, text: str, keyboard: Optional[Keyboard] = None) -> None:
        try:
            await self.bot.edit_message_text(
                text=text,
                chat_id=chat_id,
                message_id=message_id,
                parse_mode=ParseMode.HTML,
                reply_markup=_markup(keyboard),
            )
        except TelegramError as e:
            logs.log(logging.ERROR, f"Failed to edit message {message_id} in chat {chat_id}: {str(e)}")
            raise TransportError(f"edit of {message_id} failed") from e

    async def answer_callback(self, callback_id: str) -> None:
        try:
            await self.bot.answer_callback_query(callback_query_id=callback_id)
        except TelegramError as e:
            logs.log(logging.WARNING, f"Failed to answer callback {callback_id}: {str(e)}")
            raise TransportError("callback answer failed") from e

    async def set_commands(self, commands: List[BotCommand], language: Optional[str] = None) -> None:
        try:
            await self.bot.set_my_commands(
                [TelegramBotCommand(c.command, c.description) for c in commands],
                language_code=language,
            )
        except TelegramError as e:
            logs.log(logging.ERROR, f"Failed to set bot commands: {str(e)}")
            raise TransportError("set commands failed") from e
