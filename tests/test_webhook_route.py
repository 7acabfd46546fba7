from unittest.mock import AsyncMock

import httpx
import pytest
from telegram import Update

from weather_bot.core.config import settings
from weather_bot.main import app
from weather_bot.models.base_model import EventKind
from weather_bot.routes.webhook_route import SECRET_HEADER, event_from_update, get_dispatcher
from weather_bot.services.dispatcher import ConversationDispatcher

CHAT = {"id": 42, "type": "private"}
USER = {"id": 42, "is_bot": False, "first_name": "Ann", "language_code": "ru"}
BOT_USER = {"id": 1, "is_bot": True, "first_name": "WeatherBot"}


def message(message_id, text, **extra):
    return {"message_id": message_id, "date": 1709640000, "chat": CHAT, "from": USER, "text": text, **extra}


def update(**payload):
    return Update.de_json({"update_id": 1, **payload}, None)


class TestEventFromUpdate:
    def test_plain_text(self):
        event = event_from_update(update(message=message(10, "Paris")))

        assert event.kind == EventKind.TEXT
        assert (event.chat_id, event.message_id, event.text) == (42, 10, "Paris")
        assert event.language == "ru"

    def test_command(self):
        event = event_from_update(update(message=message(10, "/help")))
        assert event.kind == EventKind.COMMAND
        assert event.command == "/help"

    def test_reply_carries_prompt_text(self):
        prompt = {**message(5, "AddCity v1\nReply with the city"), "from": BOT_USER}
        event = event_from_update(update(message=message(11, "Paris", reply_to_message=prompt)))

        assert event.kind == EventKind.REPLY
        assert event.reply_to.message_id == 5
        assert event.reply_to.text.startswith("AddCity v1")

    def test_callback_keeps_list_reply_chain(self):
        candidate_list = {
            **message(30, "1. Springfield", reply_to_message=message(10, "Springfield")),
            "from": BOT_USER,
        }
        event = event_from_update(update(callback_query={
            "id": "cb-1", "from": USER, "chat_instance": "ci", "data": "C:2", "message": candidate_list,
        }))

        assert event.kind == EventKind.CALLBACK
        assert (event.chat_id, event.message_id) == (42, 30)
        assert event.callback_id == "cb-1"
        assert event.callback_data == "C:2"
        assert event.callback_message.reply_to.message_id == 10

    def test_callback_without_message_is_unsupported(self):
        event = event_from_update(update(callback_query={
            "id": "cb-2", "from": USER, "chat_instance": "ci", "data": "F", "inline_message_id": "abc",
        }))
        assert event is None

    def test_edited_message_is_unsupported(self):
        assert event_from_update(update(edited_message=message(10, "Paris"))) is None

    def test_message_without_text_is_unsupported(self):
        sticker_message = message(10, None)
        del sticker_message["text"]
        assert event_from_update(update(message=sticker_message)) is None


@pytest.fixture
def dispatcher():
    mock = AsyncMock(spec=ConversationDispatcher)
    app.dependency_overrides[get_dispatcher] = lambda: mock
    yield mock
    app.dependency_overrides.clear()


async def post(body, headers=None):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        if isinstance(body, dict):
            return await client.post("/telegram/webhook", json=body, headers=headers)
        return await client.post("/telegram/webhook", content=body, headers=headers)


class TestWebhookRoute:
    @pytest.mark.asyncio
    async def test_update_is_dispatched(self, dispatcher, monkeypatch):
        monkeypatch.setattr(settings, "TELEGRAM_WEBHOOK_SECRET", None)

        response = await post({"update_id": 1, "message": message(10, "Paris")})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        event = dispatcher.dispatch.await_args.args[0]
        assert event.kind == EventKind.TEXT and event.text == "Paris"

    @pytest.mark.asyncio
    async def test_wrong_secret_is_rejected(self, dispatcher, monkeypatch):
        monkeypatch.setattr(settings, "TELEGRAM_WEBHOOK_SECRET", "s3cret")

        response = await post({"update_id": 1, "message": message(10, "Paris")}, {SECRET_HEADER: "guess"})

        assert response.status_code == 403
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_matching_secret_is_accepted(self, dispatcher, monkeypatch):
        monkeypatch.setattr(settings, "TELEGRAM_WEBHOOK_SECRET", "s3cret")

        response = await post({"update_id": 1, "message": message(10, "Paris")}, {SECRET_HEADER: "s3cret"})

        assert response.status_code == 200
        dispatcher.dispatch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unsupported_update_is_acknowledged(self, dispatcher, monkeypatch):
        monkeypatch.setattr(settings, "TELEGRAM_WEBHOOK_SECRET", None)

        response = await post({"update_id": 1, "edited_message": message(10, "Paris")})

        assert response.status_code == 200
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreadable_body(self, dispatcher, monkeypatch):
        monkeypatch.setattr(settings, "TELEGRAM_WEBHOOK_SECRET", None)

        response = await post(b"{not json", {"Content-Type": "application/json"})

        assert response.status_code == 400
        dispatcher.dispatch.assert_not_awaited()
