from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING
from weather_bot.core.config import settings
from weather_bot.core.logger import logs
import logging

# Collection names shared with MongoRepository
PENDING_CITIES = "pending_cities"
FORECASTS = "forecasts"
SUBSCRIPTIONS = "subscriptions"
CHAT_SETTINGS = "chat_settings"


class AsyncDBConnection:
    """
    Lazily creates the motor client. Only used when STORAGE_MODE=mongodb.
    """
    _client: AsyncIOMotorClient | None = None

    def get_database(self) -> AsyncIOMotorDatabase:
        if settings.STORAGE_MODE != "mongodb":
            raise RuntimeError("MongoDB not available - STORAGE_MODE is set to 'local'")

        if AsyncDBConnection._client is None:
            # Motor client is non-blocking, the first query opens the socket
            AsyncDBConnection._client = AsyncIOMotorClient(
                settings.MONGO_URI,
                serverSelectionTimeoutMS=int(settings.HTTP_TIMEOUT_SECONDS * 1000),
            )
            logs.log(logging.INFO, f"MongoDB client created for database {settings.MONGO_DB_NAME}")

        return AsyncDBConnection._client[settings.MONGO_DB_NAME]

    def close(self):
        if AsyncDBConnection._client is not None:
            AsyncDBConnection._client.close()
            AsyncDBConnection._client = None
            logs.log(logging.INFO, "MongoDB client closed")


async def ensure_indexes(db: AsyncIOMotorDatabase):
    """
    Point-lookup indexes plus the uniqueness of completed subscriptions.
    Awaiting-time rows have no `time` string and are outside the unique index.
    """
    await db[PENDING_CITIES].create_index(
        [("chat_id", ASCENDING), ("message_id", ASCENDING)], unique=True
    )
    await db[FORECASTS].create_index(
        [("chat_id", ASCENDING), ("message_id", ASCENDING)], unique=True
    )
    await db[SUBSCRIPTIONS].create_index(
        [("chat_id", ASCENDING), ("lon", ASCENDING), ("lat", ASCENDING), ("time", ASCENDING)],
        unique=True,
        partialFilterExpression={"time": {"$type": "string"}},
    )
    await db[SUBSCRIPTIONS].create_index([("time", ASCENDING)])
    await db[CHAT_SETTINGS].create_index([("chat_id", ASCENDING)], unique=True)
    for name in (PENDING_CITIES, FORECASTS, SUBSCRIPTIONS):
        await db[name].create_index([("created_at", ASCENDING)])
    logs.log(logging.INFO, "MongoDB indexes ensured")


db_connection = AsyncDBConnection()
