from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError, DuplicateKeyError
from datetime import datetime
from typing import Optional, List
import logging

from weather_bot.core.db_connection import PENDING_CITIES, FORECASTS, SUBSCRIPTIONS, CHAT_SETTINGS
from weather_bot.core.errors import StoreError, ValidationError, StateIntegrityError
from weather_bot.core.logger import logs
from weather_bot.models.store_model import (
    PendingDisambiguation, ForecastCacheEntry, Subscription, DueSubscription, SweepResult, utc_now,
)
from weather_bot.models.weather_model import Coordinates
from weather_bot.repos.base_repo import BaseRepository


def _city_filter(chat_id: int, coordinates: Coordinates) -> dict:
    return {"chat_id": chat_id, "lon": coordinates.lon, "lat": coordinates.lat}


def _to_subscription(doc: dict) -> Subscription:
    return Subscription(
        chat_id=doc["chat_id"],
        city_name=doc["city_name"],
        coordinates=Coordinates(lon=doc["lon"], lat=doc["lat"]),
        time=doc.get("time"),
        language=doc["language"],
        created_at=doc["created_at"],
    )


class MongoRepository(BaseRepository):
    """
    Stores the conversation state in MongoDB through motor.
    Subscriptions keep lon/lat as top-level fields so the unique index
    on (chat_id, lon, lat, time) can cover them.
    """
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.pending_collection = self.db[PENDING_CITIES]
        self.forecasts_collection = self.db[FORECASTS]
        self.subscriptions_collection = self.db[SUBSCRIPTIONS]
        self.settings_collection = self.db[CHAT_SETTINGS]

    async def _replace_by_message(self, collection, chat_id: int, message_id: int, doc: dict):
        await collection.replace_one(
            {"chat_id": chat_id, "message_id": message_id}, doc, upsert=True
        )

    # ===== Disambiguation =====

    async def save_pending_cities(self, pending: PendingDisambiguation) -> None:
        doc = pending.model_dump(mode="json")
        doc["created_at"] = pending.created_at  # native date for the sweep query
        try:
            await self._replace_by_message(self.pending_collection, pending.chat_id, pending.message_id, doc)
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Failed to save pending cities: {str(e)}")
            raise StoreError("cannot save pending cities") from e

    async def get_pending_cities(self, chat_id: int, message_id: int) -> Optional[PendingDisambiguation]:
        try:
            doc = await self.pending_collection.find_one({"chat_id": chat_id, "message_id": message_id})
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Failed to get pending cities: {str(e)}")
            raise StoreError("cannot read pending cities") from e
        return PendingDisambiguation.model_validate(doc) if doc else None

    # ===== Forecast cache =====

    async def save_forecast(self, entry: ForecastCacheEntry) -> None:
        doc = entry.model_dump(mode="json")
        doc["created_at"] = entry.created_at
        try:
            await self._replace_by_message(self.forecasts_collection, entry.chat_id, entry.message_id, doc)
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Failed to cache forecast: {str(e)}")
            raise StoreError("cannot save forecast") from e

    async def get_forecast(self, chat_id: int, message_id: int) -> Optional[ForecastCacheEntry]:
        try:
            doc = await self.forecasts_collection.find_one({"chat_id": chat_id, "message_id": message_id})
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Failed to get cached forecast: {str(e)}")
            raise StoreError("cannot read forecast") from e
        return ForecastCacheEntry.model_validate(doc) if doc else None

    # ===== Chat settings =====

    async def get_full_forecast(self, chat_id: int) -> bool:
        try:
            doc = await self.settings_collection.find_one({"chat_id": chat_id})
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Failed to get chat settings: {str(e)}")
            raise StoreError("cannot read chat settings") from e
        return doc.get("full_forecast", True) if doc else True

    async def set_full_forecast(self, chat_id: int, full_forecast: bool) -> None:
        try:
            await self.settings_collection.update_one(
                {"chat_id": chat_id},
                {"$set": {"full_forecast": full_forecast, "updated_at": utc_now()}},
                upsert=True,
            )
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Failed to update chat settings: {str(e)}")
            raise StoreError("cannot write chat settings") from e

    # ===== Subscriptions =====

    async def add_subscription_city(self, subscription: Subscription) -> None:
        doc = {
            **_city_filter(subscription.chat_id, subscription.coordinates),
            "city_name": subscription.city_name,
            "time": None,
            "language": subscription.language,
            "created_at": subscription.created_at,
        }
        try:
            await self.subscriptions_collection.delete_many(
                {**_city_filter(subscription.chat_id, subscription.coordinates), "time": None}
            )
            await self.subscriptions_collection.insert_one(doc)
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Failed to add subscription city: {str(e)}")
            raise StoreError("cannot add subscription") from e

    async def complete_subscription_time(
        self, chat_id: int, coordinates: Coordinates, time: str
    ) -> Subscription:
        awaiting = {**_city_filter(chat_id, coordinates), "time": None}
        try:
            doc = await self.subscriptions_collection.find_one_and_update(
                awaiting, {"$set": {"time": time}}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as e:
            try:
                await self.subscriptions_collection.delete_many(awaiting)
            except PyMongoError as cleanup_error:
                logs.log(logging.ERROR, f"Failed to drop duplicate subscription: {str(cleanup_error)}")
                raise StoreError("cannot drop duplicate subscription") from cleanup_error
            raise ValidationError(
                "subscription already exists", message_key="subscriptionAlreadyExists"
            ) from e
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Failed to complete subscription: {str(e)}")
            raise StoreError("cannot complete subscription") from e

        if doc is None:
            raise StateIntegrityError(f"no subscription awaiting time for chat {chat_id}")
        return _to_subscription(doc)

    async def get_subscriptions(self, chat_id: int) -> List[Subscription]:
        try:
            cursor = self.subscriptions_collection.find(
                {"chat_id": chat_id, "time": {"$type": "string"}}
            ).sort("time", 1)
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Failed to list subscriptions: {str(e)}")
            raise StoreError("cannot list subscriptions") from e
        return [_to_subscription(doc) for doc in docs]

    async def cancel_subscription(self, chat_id: int, coordinates: Coordinates, time: str) -> bool:
        try:
            result = await self.subscriptions_collection.delete_one(
                {**_city_filter(chat_id, coordinates), "time": time}
            )
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Failed to cancel subscription: {str(e)}")
            raise StoreError("cannot cancel subscription") from e
        return result.deleted_count == 1

    async def get_due_subscriptions(self, time: str) -> List[DueSubscription]:
        try:
            cursor = self.subscriptions_collection.find(
                {"time": time}, {"chat_id": 1, "lon": 1, "lat": 1, "language": 1}
            )
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Failed to query due subscriptions: {str(e)}")
            raise StoreError("cannot query due subscriptions") from e
        return [
            DueSubscription(
                chat_id=doc["chat_id"],
                coordinates=Coordinates(lon=doc["lon"], lat=doc["lat"]),
                language=doc["language"],
            )
            for doc in docs
        ]

    # ===== Maintenance =====

    async def sweep(self, cutoff: datetime) -> SweepResult:
        expired = {"created_at": {"$lt": cutoff}}
        try:
            pending = await self.pending_collection.delete_many(expired)
            forecasts = await self.forecasts_collection.delete_many(expired)
            subscriptions = await self.subscriptions_collection.delete_many({**expired, "time": None})
        except PyMongoError as e:
            logs.log(logging.ERROR, f"Sweep failed: {str(e)}")
            raise StoreError("sweep failed") from e
        return SweepResult(
            pending_cities=pending.deleted_count,
            forecasts=forecasts.deleted_count,
            subscriptions=subscriptions.deleted_count,
        )
