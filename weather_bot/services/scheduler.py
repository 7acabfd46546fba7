"""
Background jobs: the periodic sweep of abandoned conversation state and
the once-a-minute push of daily forecasts.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from weather_bot.core.config import settings
from weather_bot.core.errors import BotError
from weather_bot.core.llm_connection import LLMService
from weather_bot.core.logger import logs
from weather_bot.models.store_model import DueSubscription, SweepResult, utc_now
from weather_bot.repos.base_repo import BaseRepository
from weather_bot.services.chat_locks import ChatLocks
from weather_bot.services.forecast_bucketer import bucket_by_day
from weather_bot.services.rendering import render_day_page, split_message
from weather_bot.services.transport import ChatTransport
from weather_bot.services.weather_service import WeatherService


async def sweep(
    repo: BaseRepository, now: Optional[datetime] = None, retention: Optional[timedelta] = None
) -> Optional[SweepResult]:
    """One sweep cycle. Returns None when the store failed and the cycle was skipped."""
    now = now or utc_now()
    retention = retention or timedelta(minutes=settings.RETENTION_MINUTES)
    try:
        result = await repo.sweep(now - retention)
    except BotError as e:
        logs.log(logging.ERROR, f"Sweep skipped: {str(e)}")
        return None
    logs.log(logging.INFO, "Sweep finished", extra=result.model_dump())
    return result


async def _push_one(
    subscription: DueSubscription,
    repo: BaseRepository,
    weather: WeatherService,
    transport: ChatTransport,
    locks: ChatLocks,
    chunk_size: int,
    writer: Optional[LLMService] = None,
) -> bool:
    async with locks.hold(subscription.chat_id):
        try:
            samples = await weather.get_forecast(subscription.coordinates, subscription.language)
            pages = bucket_by_day(samples)
            full_forecast = await repo.get_full_forecast(subscription.chat_id)
            text = render_day_page(pages[0], subscription.language, full_forecast)
            if writer:
                text = await writer.rewrite_forecast(text, subscription.language)
            for chunk in split_message(text, chunk_size):
                await transport.send(subscription.chat_id, chunk)
        except BotError as e:
            logs.log(logging.ERROR, f"Scheduled forecast failed: {str(e)}", extra={"chat_id": subscription.chat_id})
            return False
    return True


async def push_due(
    repo: BaseRepository,
    weather: WeatherService,
    transport: ChatTransport,
    locks: ChatLocks,
    now: Optional[datetime] = None,
    chunk_size: Optional[int] = None,
    writer: Optional[LLMService] = None,
) -> int:
    """Send today's forecast to every subscription due this minute; returns how many went out."""
    now = now or utc_now()
    due_time = now.astimezone(timezone.utc).strftime("%H:%M")
    try:
        due = await repo.get_due_subscriptions(due_time)
    except BotError as e:
        logs.log(logging.ERROR, f"Push tick {due_time} skipped: {str(e)}")
        return 0
    if not due:
        return 0

    results = await asyncio.gather(
        *(
            _push_one(s, repo, weather, transport, locks, chunk_size or settings.MESSAGE_CHUNK_SIZE, writer)
            for s in due
        ),
        return_exceptions=True,
    )
    sent = 0
    for subscription, result in zip(due, results):
        if isinstance(result, BaseException):
            logs.log(logging.ERROR, f"Unexpected push error: {result!r}", extra={"chat_id": subscription.chat_id})
        elif result:
            sent += 1
    logs.log(logging.INFO, f"Push tick {due_time}: {sent}/{len(due)} forecasts sent")
    return sent


def seconds_until_next_tick(now: datetime, tick_seconds: int) -> float:
    return tick_seconds - (now.timestamp() % tick_seconds)


async def sweep_loop(repo: BaseRepository):
    while True:
        await asyncio.sleep(settings.SWEEP_INTERVAL_MINUTES * 60)
        try:
            await sweep(repo)
        except Exception as e:
            logs.log(logging.ERROR, f"Unexpected sweep error: {str(e)}", exc_info=True)


async def push_loop(
    repo: BaseRepository,
    weather: WeatherService,
    transport: ChatTransport,
    locks: ChatLocks,
    writer: Optional[LLMService] = None,
):
    while True:
        now = utc_now()
        delay = seconds_until_next_tick(now, settings.PUSH_TICK_SECONDS)
        # The tick is named by the boundary, even if the sleep wakes early
        tick = now + timedelta(seconds=delay)
        await asyncio.sleep(delay)
        try:
            await push_due(repo, weather, transport, locks, now=tick, writer=writer)
        except Exception as e:
            logs.log(logging.ERROR, f"Unexpected push tick error: {str(e)}", exc_info=True)
