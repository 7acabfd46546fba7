from unittest.mock import AsyncMock

import pytest

from weather_bot.repos.local_repo import LocalRepository
from weather_bot.services.geocoding_service import GeocodingService
from weather_bot.services.transport import ChatTransport
from weather_bot.services.weather_service import WeatherService


@pytest.fixture
def repo(tmp_path) -> LocalRepository:
    """A JSON-file repository in a fresh temporary directory."""
    return LocalRepository(str(tmp_path / "data"))


@pytest.fixture
def transport() -> AsyncMock:
    mock = AsyncMock(spec=ChatTransport)
    mock.send.return_value = 500
    mock.send_force_reply.return_value = 501
    return mock


@pytest.fixture
def geocoding() -> AsyncMock:
    return AsyncMock(spec=GeocodingService)


@pytest.fixture
def weather() -> AsyncMock:
    return AsyncMock(spec=WeatherService)
