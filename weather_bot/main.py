import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from telegram import Bot
from telegram.error import TelegramError

from weather_bot.core.config import settings
from weather_bot.core.db_connection import db_connection
from weather_bot.core.llm_connection import LLMService
from weather_bot.core.logger import logs
from weather_bot.routes.webhook_route import router, get_repository
from weather_bot.services.chat_locks import ChatLocks
from weather_bot.services.dispatcher import ConversationDispatcher
from weather_bot.services.geocoding_service import GeocodingService
from weather_bot.services.scheduler import push_loop, sweep_loop
from weather_bot.services.transport import TelegramTransport
from weather_bot.services.weather_service import WeatherService


@asynccontextmanager
async def lifespan(app: FastAPI):
    repo = await get_repository()
    bot = Bot(settings.TELEGRAM_BOT_TOKEN)
    transport = TelegramTransport(bot)
    weather = WeatherService()
    locks = ChatLocks()
    app.state.dispatcher = ConversationDispatcher(repo, transport, GeocodingService(), weather, locks)

    if settings.TELEGRAM_WEBHOOK_URL:
        try:
            await bot.set_webhook(settings.TELEGRAM_WEBHOOK_URL, secret_token=settings.TELEGRAM_WEBHOOK_SECRET)
            logs.log(logging.INFO, f"Webhook registered at {settings.TELEGRAM_WEBHOOK_URL}")
        except TelegramError as e:
            logs.log(logging.ERROR, f"Webhook registration failed: {str(e)}")

    tasks = []
    if settings.ENABLE_BACKGROUND_JOBS:
        tasks.append(asyncio.create_task(sweep_loop(repo)))
        tasks.append(asyncio.create_task(push_loop(repo, weather, transport, locks, LLMService.from_settings())))
        logs.log(logging.INFO, "Background sweep and push jobs started")

    yield

    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    await bot.shutdown()
    db_connection.close()
    logs.log(logging.INFO, "Weather bot stopped")


app = FastAPI(title="Weather Bot", lifespan=lifespan)
app.include_router(router)

# --- Root Endpoint ---
@app.get("/")
async def root():
    return {
        "message": "Telegram weather bot",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "webhook": "/telegram/webhook",
            "docs": "/docs"
        },
        "version": "1.0.0"
    }

# --- Health Check ---
@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "Weather Bot", "storage": settings.STORAGE_MODE}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("weather_bot.main:app", host="0.0.0.0", port=8000, reload=True)
