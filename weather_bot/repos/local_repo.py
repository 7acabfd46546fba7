"""
Local file-based repository for the conversation state.
Uses one JSON file per collection instead of MongoDB.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, List

from pydantic import TypeAdapter

from weather_bot.core.config import settings
from weather_bot.core.db_connection import PENDING_CITIES, FORECASTS, SUBSCRIPTIONS, CHAT_SETTINGS
from weather_bot.core.errors import StoreError, ValidationError, StateIntegrityError
from weather_bot.core.logger import logs
from weather_bot.models.store_model import (
    PendingDisambiguation, ForecastCacheEntry, Subscription, ChatSettings, DueSubscription, SweepResult,
)
from weather_bot.models.weather_model import Coordinates
from weather_bot.repos.base_repo import BaseRepository

_TIMESTAMP = TypeAdapter(datetime)


class LocalRepository(BaseRepository):
    """Repository for storing data in local JSON files."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.LOCAL_DATA_DIR)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logs.log(logging.INFO, f"Local file repository initialized at {self.base_dir}")

    def _get_file(self, collection: str) -> Path:
        return self.base_dir / f"{collection}.json"

    def _load(self, collection: str) -> list[dict]:
        path = self._get_file(collection)
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logs.log(logging.ERROR, f"Failed to read {path}: {str(e)}")
            raise StoreError(f"cannot read {collection}") from e

    def _dump(self, collection: str, rows: list[dict]):
        path = self._get_file(collection)
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(rows, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logs.log(logging.ERROR, f"Failed to write {path}: {str(e)}")
            raise StoreError(f"cannot write {collection}") from e

    @staticmethod
    def _same_message(row: dict, chat_id: int, message_id: int) -> bool:
        return row["chat_id"] == chat_id and row["message_id"] == message_id

    @staticmethod
    def _same_city(row: dict, chat_id: int, coordinates: Coordinates) -> bool:
        return (
            row["chat_id"] == chat_id
            and Coordinates.model_validate(row["coordinates"]) == coordinates
        )

    def _upsert_by_message(self, collection: str, chat_id: int, message_id: int, row: dict):
        rows = [r for r in self._load(collection) if not self._same_message(r, chat_id, message_id)]
        rows.append(row)
        self._dump(collection, rows)

    # ===== Disambiguation =====

    async def save_pending_cities(self, pending: PendingDisambiguation) -> None:
        self._upsert_by_message(
            PENDING_CITIES, pending.chat_id, pending.message_id, pending.model_dump(mode="json")
        )

    async def get_pending_cities(self, chat_id: int, message_id: int) -> Optional[PendingDisambiguation]:
        for row in self._load(PENDING_CITIES):
            if self._same_message(row, chat_id, message_id):
                return PendingDisambiguation.model_validate(row)
        return None

    # ===== Forecast cache =====

    async def save_forecast(self, entry: ForecastCacheEntry) -> None:
        self._upsert_by_message(
            FORECASTS, entry.chat_id, entry.message_id, entry.model_dump(mode="json")
        )

    async def get_forecast(self, chat_id: int, message_id: int) -> Optional[ForecastCacheEntry]:
        for row in self._load(FORECASTS):
            if self._same_message(row, chat_id, message_id):
                return ForecastCacheEntry.model_validate(row)
        return None

    # ===== Chat settings =====

    async def get_full_forecast(self, chat_id: int) -> bool:
        for row in self._load(CHAT_SETTINGS):
            if row["chat_id"] == chat_id:
                return ChatSettings.model_validate(row).full_forecast
        return True

    async def set_full_forecast(self, chat_id: int, full_forecast: bool) -> None:
        rows = [r for r in self._load(CHAT_SETTINGS) if r["chat_id"] != chat_id]
        rows.append(ChatSettings(chat_id=chat_id, full_forecast=full_forecast).model_dump(mode="json"))
        self._dump(CHAT_SETTINGS, rows)

    # ===== Subscriptions =====

    async def add_subscription_city(self, subscription: Subscription) -> None:
        rows = [
            r for r in self._load(SUBSCRIPTIONS)
            if not (r["time"] is None and self._same_city(r, subscription.chat_id, subscription.coordinates))
        ]
        rows.append(subscription.model_dump(mode="json"))
        self._dump(SUBSCRIPTIONS, rows)

    async def complete_subscription_time(
        self, chat_id: int, coordinates: Coordinates, time: str
    ) -> Subscription:
        rows = self._load(SUBSCRIPTIONS)
        awaiting = next(
            (r for r in rows if r["time"] is None and self._same_city(r, chat_id, coordinates)), None
        )
        if awaiting is None:
            raise StateIntegrityError(f"no subscription awaiting time for chat {chat_id}")

        duplicate = any(
            r["time"] == time and self._same_city(r, chat_id, coordinates) for r in rows
        )
        rows.remove(awaiting)
        if duplicate:
            self._dump(SUBSCRIPTIONS, rows)
            raise ValidationError("subscription already exists", message_key="subscriptionAlreadyExists")

        awaiting["time"] = time
        rows.append(awaiting)
        self._dump(SUBSCRIPTIONS, rows)
        return Subscription.model_validate(awaiting)

    async def get_subscriptions(self, chat_id: int) -> List[Subscription]:
        subscriptions = [
            Subscription.model_validate(r) for r in self._load(SUBSCRIPTIONS)
            if r["chat_id"] == chat_id and r["time"] is not None
        ]
        return sorted(subscriptions, key=lambda s: s.time)

    async def cancel_subscription(self, chat_id: int, coordinates: Coordinates, time: str) -> bool:
        rows = self._load(SUBSCRIPTIONS)
        kept = [r for r in rows if not (r["time"] == time and self._same_city(r, chat_id, coordinates))]
        if len(kept) == len(rows):
            return False
        self._dump(SUBSCRIPTIONS, kept)
        return True

    async def get_due_subscriptions(self, time: str) -> List[DueSubscription]:
        return [
            DueSubscription(
                chat_id=r["chat_id"],
                coordinates=Coordinates.model_validate(r["coordinates"]),
                language=r["language"],
            )
            for r in self._load(SUBSCRIPTIONS) if r["time"] == time
        ]

    # ===== Maintenance =====

    def _drop_older(self, collection: str, cutoff: datetime, only_awaiting: bool = False) -> int:
        rows = self._load(collection)
        kept = []
        for row in rows:
            expired = _TIMESTAMP.validate_python(row["created_at"]) < cutoff
            if expired and (not only_awaiting or row["time"] is None):
                continue
            kept.append(row)
        if len(kept) != len(rows):
            self._dump(collection, kept)
        return len(rows) - len(kept)

    async def sweep(self, cutoff: datetime) -> SweepResult:
        return SweepResult(
            pending_cities=self._drop_older(PENDING_CITIES, cutoff),
            forecasts=self._drop_older(FORECASTS, cutoff),
            subscriptions=self._drop_older(SUBSCRIPTIONS, cutoff, only_awaiting=True),
        )
