from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List

from weather_bot.models.store_model import (
    PendingDisambiguation, ForecastCacheEntry, Subscription, DueSubscription, SweepResult,
)
from weather_bot.models.weather_model import Coordinates


class BaseRepository(ABC):
    """
    Point-lookup store for the conversation state.
    Implementations raise StoreError for backend failures.
    """

    # ===== Disambiguation =====

    @abstractmethod
    async def save_pending_cities(self, pending: PendingDisambiguation) -> None:
        """Store the candidate list verbatim under (chat, message)."""

    @abstractmethod
    async def get_pending_cities(self, chat_id: int, message_id: int) -> Optional[PendingDisambiguation]:
        ...

    # ===== Forecast cache =====

    @abstractmethod
    async def save_forecast(self, entry: ForecastCacheEntry) -> None:
        ...

    @abstractmethod
    async def get_forecast(self, chat_id: int, message_id: int) -> Optional[ForecastCacheEntry]:
        ...

    # ===== Chat settings =====

    @abstractmethod
    async def get_full_forecast(self, chat_id: int) -> bool:
        """Forecast verbosity of the chat, full unless changed."""

    @abstractmethod
    async def set_full_forecast(self, chat_id: int, full_forecast: bool) -> None:
        ...

    # ===== Subscriptions =====

    @abstractmethod
    async def add_subscription_city(self, subscription: Subscription) -> None:
        """
        First phase of a subscription: insert the row without a time,
        dropping any earlier awaiting-time row for the same chat and city.
        """

    @abstractmethod
    async def complete_subscription_time(
        self, chat_id: int, coordinates: Coordinates, time: str
    ) -> Subscription:
        """
        Second phase: set the time on the awaiting row.
        Raises ValidationError("subscriptionAlreadyExists") for a duplicate
        and StateIntegrityError when no awaiting row is left.
        """

    @abstractmethod
    async def get_subscriptions(self, chat_id: int) -> List[Subscription]:
        """Completed subscriptions of the chat, ordered by time."""

    @abstractmethod
    async def cancel_subscription(self, chat_id: int, coordinates: Coordinates, time: str) -> bool:
        ...

    @abstractmethod
    async def get_due_subscriptions(self, time: str) -> List[DueSubscription]:
        """Completed subscriptions whose UTC "HH:MM" equals `time`."""

    # ===== Maintenance =====

    @abstractmethod
    async def sweep(self, cutoff: datetime) -> SweepResult:
        """
        Delete disambiguations, cached forecasts and awaiting-time
        subscriptions created before `cutoff`.
        """
