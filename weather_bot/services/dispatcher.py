import asyncio
import logging
import re
from html import escape
from typing import Optional

from weather_bot.core.errors import BotError, ErrorKind, StateIntegrityError, ValidationError
from weather_bot.core.logger import logs
from weather_bot.models.base_model import BotCommand, EventKind, IncomingEvent
from weather_bot.models.store_model import ForecastCacheEntry, PendingDisambiguation, Subscription
from weather_bot.models.weather_model import CityCandidate, Coordinates
from weather_bot.repos.base_repo import BaseRepository
from weather_bot.services import callback_token, rendering
from weather_bot.services.callback_token import DecodeStatus, TokenAction
from weather_bot.services.chat_locks import ChatLocks
from weather_bot.services.forecast_bucketer import bucket_by_day
from weather_bot.services.geocoding_service import GeocodingService
from weather_bot.services.localization import resolve, supported_language
from weather_bot.services.message_state import (
    decode_state, AddCityState, AddTimeState, WeatherState, SubscriptionState,
)
from weather_bot.services.transport import ChatTransport
from weather_bot.services.weather_service import WeatherService

TIME_INPUT = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$", re.ASCII)

# command -> catalogue key of its menu description
COMMANDS = {
    "/start": "startCommandDescription",
    "/help": "helpCommandDescription",
    "/subscriptions": "subscriptionsCommandDescription",
    "/subscriptions_add": "subscriptionsCommandAddCityDescription",
    "/change_forecast_type": "settingsCommandChangeForecastTypeDescription",
}


def parse_notification_time(text: Optional[str]) -> str:
    """'7:30' or '07:30' -> '07:30'."""
    match = TIME_INPUT.match(text or "")
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours < 24 and minutes < 60:
            return f"{hours:02d}:{minutes:02d}"
    raise ValidationError(f"invalid time {text!r}", message_key="invalidTime")


def bot_commands(language: str) -> list[BotCommand]:
    return [
        BotCommand(command=command.lstrip("/"), description=resolve(language, key))
        for command, key in COMMANDS.items()
    ]


class ConversationDispatcher:
    """
    Drives every conversation flow from a single incoming event.

    Nothing is kept in memory between events: state comes back from the
    stores, keyed by (chat, message), or from the text of the message the
    user replied to or pressed a button on. Events are handled one at a
    time; the chat lock keeps scheduled pushes out of an in-flight dispatch.
    """
    def __init__(
        self,
        repo: BaseRepository,
        transport: ChatTransport,
        geocoding: GeocodingService,
        weather: WeatherService,
        locks: Optional[ChatLocks] = None,
    ):
        self.repo = repo
        self.transport = transport
        self.geocoding = geocoding
        self.weather = weather
        self.locks = locks or ChatLocks()
        self._dispatch_lock = asyncio.Lock()

    async def dispatch(self, event: IncomingEvent) -> None:
        language = supported_language(event.language)
        async with self._dispatch_lock, self.locks.hold(event.chat_id):
            logs.log(logging.INFO, f"Dispatching {event.kind.value} event", extra={"chat_id": event.chat_id})
            if event.kind == EventKind.CALLBACK and event.callback_id:
                await self._answer_callback(event.callback_id)
            try:
                await self._route(event, language)
            except BotError as e:
                await self._report_error(event.chat_id, language, e)
            except Exception as e:
                logs.log(logging.ERROR, f"Unexpected error while dispatching: {str(e)}", exc_info=True)
                await self._send_error_text(event.chat_id, language, "defaultError")

    async def _route(self, event: IncomingEvent, language: str):
        if event.kind == EventKind.COMMAND:
            await self._handle_command(event, language)
        elif event.kind == EventKind.TEXT:
            await self._lookup_city(event.chat_id, event.text, event.message_id, language)
        elif event.kind == EventKind.REPLY:
            await self._handle_reply(event, language)
        elif event.kind == EventKind.CALLBACK:
            await self._handle_callback(event, language)

    # ===== Errors =====

    async def _answer_callback(self, callback_id: str):
        try:
            await self.transport.answer_callback(callback_id)
        except BotError as e:
            logs.log(logging.WARNING, f"Could not answer callback: {str(e)}")

    async def _report_error(self, chat_id: int, language: str, error: BotError):
        if error.kind == ErrorKind.VALIDATION and error.message_key:
            logs.log(logging.INFO, f"Rejected input: {str(error)}", extra={"chat_id": chat_id})
            key = error.message_key
        else:
            logs.log(logging.ERROR, f"{error.kind.value} failure: {str(error)}", extra={"chat_id": chat_id})
            key = "defaultError"
        await self._send_error_text(chat_id, language, key)

    async def _send_error_text(self, chat_id: int, language: str, key: str):
        try:
            await self.transport.send(chat_id, resolve(language, key))
        except BotError as e:
            logs.log(logging.ERROR, f"Could not deliver error message to chat {chat_id}: {str(e)}")

    # ===== Commands =====

    async def _handle_command(self, event: IncomingEvent, language: str):
        command = event.command
        chat_id = event.chat_id
        if command == "/start":
            await self.transport.set_commands(bot_commands(language), language=language)
            await self.transport.send(chat_id, resolve(language, "startCommandAnswer"))
        elif command == "/help":
            await self.transport.send(chat_id, resolve(language, "helpCommandAnswer"))
        elif command == "/subscriptions":
            await self._list_subscriptions(chat_id, language)
        elif command == "/subscriptions_add":
            await self.transport.send_force_reply(chat_id, rendering.render_add_city_prompt(language))
        elif command == "/change_forecast_type":
            full_forecast = not await self.repo.get_full_forecast(chat_id)
            await self.repo.set_full_forecast(chat_id, full_forecast)
            key = "ForecastTypeFull" if full_forecast else "ForecastTypeShort"
            await self.transport.send(chat_id, resolve(language, key))
        else:
            await self.transport.send(chat_id, resolve(language, "unknownCommandAnswer"))

    async def _list_subscriptions(self, chat_id: int, language: str):
        subscriptions = await self.repo.get_subscriptions(chat_id)
        if not subscriptions:
            await self.transport.send(chat_id, resolve(language, "noSubscriptions"))
            return
        for subscription in subscriptions:
            text, keyboard = rendering.render_subscription_card(subscription, language)
            await self.transport.send(chat_id, text, keyboard)

    # ===== Flow A / C: city lookup =====

    async def _lookup_city(
        self, chat_id: int, text: str, message_id: int, language: str, for_subscription: bool = False
    ):
        """
        Resolve a typed city name. Several matches are stored under the
        id of the user's message, which the candidate list replies to.
        """
        candidates = await self.geocoding.search(text, language)
        if not candidates:
            await self.transport.send(chat_id, resolve(language, "unknownCity"), reply_to=message_id)
            return

        if len(candidates) == 1:
            if for_subscription:
                await self._ask_for_time(chat_id, candidates[0], language)
            else:
                await self._send_current_weather(chat_id, candidates[0].coordinates, language, reply_to=message_id)
            return

        await self.repo.save_pending_cities(PendingDisambiguation(
            chat_id=chat_id,
            message_id=message_id,
            candidates=candidates,
            for_subscription=for_subscription,
        ))
        text, keyboard = rendering.render_candidates(candidates, language, for_subscription)
        await self.transport.send(chat_id, text, keyboard, reply_to=message_id)

    async def _send_current_weather(
        self, chat_id: int, coordinates: Coordinates, language: str, reply_to: Optional[int] = None
    ):
        sample = await self.weather.get_current_weather(coordinates, language)
        await self.transport.send(
            chat_id,
            rendering.render_current_weather(sample, language),
            rendering.weather_keyboard(language),
            reply_to=reply_to,
        )

    async def _ask_for_time(self, chat_id: int, candidate: CityCandidate, language: str):
        await self.repo.add_subscription_city(Subscription(
            chat_id=chat_id,
            city_name=candidate.name,
            coordinates=candidate.coordinates,
            language=language,
        ))
        await self.transport.send_force_reply(
            chat_id, rendering.render_add_time_prompt(candidate.coordinates, language)
        )

    # ===== Replies =====

    async def _handle_reply(self, event: IncomingEvent, language: str):
        state = decode_state(event.reply_to.text if event.reply_to else None)
        if isinstance(state, AddCityState):
            await self._lookup_city(event.chat_id, event.text, event.message_id, language, for_subscription=True)
        elif isinstance(state, AddTimeState):
            await self._complete_subscription(event, state, language)
        else:
            logs.log(logging.DEBUG, "Ignoring reply to a message without a prompt state")

    async def _complete_subscription(self, event: IncomingEvent, state: AddTimeState, language: str):
        time = parse_notification_time(event.text)
        subscription = await self.repo.complete_subscription_time(event.chat_id, state.coordinates, time)
        logs.log(logging.INFO, f"Subscription added for {subscription.city_name} at {time}", extra={"chat_id": event.chat_id})
        await self.transport.send(
            event.chat_id, resolve(language, "subscriptionAdded", city=escape(subscription.city_name), time=time)
        )

    # ===== Callbacks =====

    async def _handle_callback(self, event: IncomingEvent, language: str):
        result = callback_token.decode(event.callback_data)
        if result.status == DecodeStatus.UNRECOGNIZED:
            return
        if result.status == DecodeStatus.MALFORMED:
            raise StateIntegrityError(f"malformed callback token {event.callback_data!r}")

        token = result.token
        if token.action in (TokenAction.CITY, TokenAction.CITY_SUBSCRIPTION):
            await self._select_city(event, token.index, token.action == TokenAction.CITY_SUBSCRIPTION, language)
        elif token.action == TokenAction.FORECAST:
            await self._show_forecast(event, language)
        elif token.action == TokenAction.FORECAST_PAGE:
            await self._show_forecast_page(event, token.index, language)
        elif token.action == TokenAction.REMOVE_SUBSCRIPTION:
            await self._remove_subscription(event, language)

    def _callback_text(self, event: IncomingEvent) -> str:
        if event.callback_message is None:
            raise StateIntegrityError("callback without its message")
        return event.callback_message.text

    async def _select_city(self, event: IncomingEvent, index: int, for_subscription: bool, language: str):
        """Flow A/C step 2: the candidate list replies to the message its entry is keyed by."""
        message = event.callback_message
        if message is None or message.reply_to is None:
            raise StateIntegrityError("candidate list is not a reply")

        pending = await self.repo.get_pending_cities(event.chat_id, message.reply_to.message_id)
        if pending is None:
            raise StateIntegrityError(f"no pending cities for message {message.reply_to.message_id}")
        if pending.for_subscription != for_subscription:
            raise StateIntegrityError("candidate list flow does not match the button")
        if index >= len(pending.candidates):
            raise StateIntegrityError(f"candidate {index} out of {len(pending.candidates)}")

        candidate = pending.candidates[index]
        if for_subscription:
            await self.transport.edit(event.chat_id, event.message_id, rendering.candidate_label(candidate))
            await self._ask_for_time(event.chat_id, candidate, language)
        else:
            sample = await self.weather.get_current_weather(candidate.coordinates, language)
            await self.transport.edit(
                event.chat_id,
                event.message_id,
                rendering.render_current_weather(sample, language),
                rendering.weather_keyboard(language),
            )

    async def _show_forecast(self, event: IncomingEvent, language: str):
        """Flow B: the weather card itself carries the coordinates."""
        state = decode_state(self._callback_text(event))
        if not isinstance(state, WeatherState):
            raise StateIntegrityError("forecast requested from a message without weather state")

        samples = await self.weather.get_forecast(state.coordinates, language)
        pages = bucket_by_day(samples)
        full_forecast = await self.repo.get_full_forecast(event.chat_id)
        await self.repo.save_forecast(ForecastCacheEntry(
            chat_id=event.chat_id,
            message_id=event.message_id,
            pages=pages,
            full_forecast=full_forecast,
        ))
        text, keyboard = rendering.render_forecast_page(pages, 0, language, full_forecast)
        await self.transport.edit(event.chat_id, event.message_id, text, keyboard)

    async def _show_forecast_page(self, event: IncomingEvent, index: int, language: str):
        entry = await self.repo.get_forecast(event.chat_id, event.message_id)
        if entry is None:
            raise StateIntegrityError(f"no cached forecast for message {event.message_id}")
        text, keyboard = rendering.render_forecast_page(entry.pages, index, language, entry.full_forecast)
        await self.transport.edit(event.chat_id, event.message_id, text, keyboard)

    async def _remove_subscription(self, event: IncomingEvent, language: str):
        """Flow D: the subscription card carries coordinates and time."""
        state = decode_state(self._callback_text(event))
        if not isinstance(state, SubscriptionState):
            raise StateIntegrityError("cancel pressed on a message without subscription state")

        removed = await self.repo.cancel_subscription(event.chat_id, state.coordinates, state.time)
        if not removed:
            logs.log(logging.INFO, "Subscription was already removed", extra={"chat_id": event.chat_id})
        await self.transport.edit(
            event.chat_id, event.message_id, resolve(language, "subscriptionRemoved", time=state.time)
        )
