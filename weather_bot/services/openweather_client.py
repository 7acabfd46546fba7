import httpx
import logging
from typing import Optional

from weather_bot.core.config import settings
from weather_bot.core.errors import UpstreamError
from weather_bot.core.logger import logs


class OpenWeatherClient:
    """
    Shared GET helper for the OpenWeather APIs. Every failure (timeout,
    non-2xx status, transport error, non-JSON body) becomes UpstreamError.
    No retries: the caller reports the failure and the user may ask again.
    """
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or settings.OPENWEATHER_API_KEY
        self.base_url = (base_url or settings.OPENWEATHER_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        # Tests inject httpx.MockTransport here
        self.transport = transport

    async def _get_json(self, path: str, params: dict):
        url = f"{self.base_url}{path}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                resp = await client.get(url, params={**params, "appid": self.api_key})
                resp.raise_for_status()
                return resp.json()
            except httpx.TimeoutException as e:
                logs.log(logging.ERROR, f"OpenWeather request timed out: {path}")
                raise UpstreamError(f"timeout calling {path}") from e
            except httpx.HTTPStatusError as e:
                logs.log(logging.ERROR, f"OpenWeather returned {e.response.status_code} for {path}")
                raise UpstreamError(f"status {e.response.status_code} from {path}") from e
            except httpx.HTTPError as e:
                logs.log(logging.ERROR, f"OpenWeather request failed: {str(e)}")
                raise UpstreamError(f"transport error calling {path}") from e
            except ValueError as e:
                logs.log(logging.ERROR, f"OpenWeather sent a non-JSON body for {path}")
                raise UpstreamError(f"invalid JSON from {path}") from e
