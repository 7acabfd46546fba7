from fastapi import APIRouter, Depends, Header, HTTPException, Request
from telegram import Message, Update
from typing import Optional
import logging

from weather_bot.core.config import settings
from weather_bot.core.db_connection import db_connection, ensure_indexes
from weather_bot.core.logger import logs
from weather_bot.models.base_model import EventKind, IncomingEvent, MessageRef
from weather_bot.repos.base_repo import BaseRepository
from weather_bot.repos.local_repo import LocalRepository
from weather_bot.repos.mongo_repo import MongoRepository
from weather_bot.services.dispatcher import ConversationDispatcher

router = APIRouter()

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"

# --- Dependency Injection Helpers ---
async def get_repository() -> BaseRepository:
    """Get the appropriate repository based on storage mode."""
    if settings.STORAGE_MODE == "mongodb":
        db = db_connection.get_database()
        await ensure_indexes(db)
        return MongoRepository(db)
    return LocalRepository()

def get_dispatcher(request: Request) -> ConversationDispatcher:
    """The dispatcher built in the application lifespan."""
    return request.app.state.dispatcher

# --- Update conversion ---
def _message_ref(message) -> Optional[MessageRef]:
    # Callback messages older than 48h arrive as InaccessibleMessage without text
    if message is None:
        return None
    reply_to = message.reply_to_message if isinstance(message, Message) else None
    return MessageRef(
        message_id=message.message_id,
        text=(message.text or "") if isinstance(message, Message) else "",
        reply_to=_message_ref(reply_to),
    )

def event_from_update(update: Update) -> Optional[IncomingEvent]:
    """Telegram update -> IncomingEvent; None for updates the bot does not handle."""
    query = update.callback_query
    if query is not None:
        if query.message is None:
            return None
        return IncomingEvent(
            kind=EventKind.CALLBACK,
            chat_id=query.message.chat.id,
            message_id=query.message.message_id,
            language=query.from_user.language_code if query.from_user else None,
            callback_id=query.id,
            callback_data=query.data,
            callback_message=_message_ref(query.message),
        )

    message = update.message
    if message is None or not message.text:
        return None

    if message.text.startswith("/"):
        kind = EventKind.COMMAND
    elif message.reply_to_message is not None:
        kind = EventKind.REPLY
    else:
        kind = EventKind.TEXT

    return IncomingEvent(
        kind=kind,
        chat_id=message.chat.id,
        message_id=message.message_id,
        text=message.text,
        language=message.from_user.language_code if message.from_user else None,
        reply_to=_message_ref(message.reply_to_message),
    )

# --- The Endpoint ---
@router.post("/telegram/webhook")
async def telegram_webhook(
    request: Request,
    secret_token: Optional[str] = Header(default=None, alias=SECRET_HEADER),
    dispatcher: ConversationDispatcher = Depends(get_dispatcher),
):
    """
    Receives one update from Telegram and dispatches it before answering,
    so updates are processed one at a time.
    """
    if settings.TELEGRAM_WEBHOOK_SECRET and secret_token != settings.TELEGRAM_WEBHOOK_SECRET:
        logs.log(logging.WARNING, "Webhook call with a wrong secret token")
        raise HTTPException(status_code=403, detail="Invalid secret token")

    try:
        update = Update.de_json(await request.json(), None)
    except (ValueError, KeyError, TypeError) as e:
        logs.log(logging.WARNING, f"Unreadable webhook body: {str(e)}")
        raise HTTPException(status_code=400, detail="Invalid update")

    event = event_from_update(update) if update else None
    if event is None:
        logs.log(logging.DEBUG, "Ignoring unsupported update")
        return {"ok": True}

    await dispatcher.dispatch(event)
    return {"ok": True}
