"""
LLM Provider Implementations
Chat-completion clients behind one interface. Every failure becomes
UpstreamError so callers can fall back to their own text.
"""
import httpx
import logging
from abc import ABC, abstractmethod
from typing import Optional

from weather_bot.core.errors import UpstreamError
from weather_bot.core.logger import logs


class BaseLLMProvider(ABC):
    """Base class for all LLM providers"""

    @abstractmethod
    async def generate(self, messages: list, temperature: float = 0.7, timeout: float = 30.0) -> str:
        """Generate a response from the LLM"""
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        pass


class HttpLLMProvider(BaseLLMProvider):
    """POSTs a JSON payload and reads the reply text out of the response body."""
    base_url: str = ""

    def __init__(self, api_key: str, model: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model = model
        self.transport = transport

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def _payload(self, messages: list, temperature: float) -> dict:
        return {"model": self.model, "messages": messages, "temperature": temperature}

    def _extract(self, data: dict) -> str:
        return data["choices"][0]["message"]["content"]

    async def generate(self, messages: list, temperature: float = 0.7, timeout: float = 30.0) -> str:
        async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    self.base_url, json=self._payload(messages, temperature), headers=self._headers()
                )
                response.raise_for_status()
                text = self._extract(response.json()).strip()
            except httpx.HTTPStatusError as e:
                logs.log(logging.ERROR, f"{self.get_provider_name()} returned {e.response.status_code}")
                raise UpstreamError(f"status {e.response.status_code} from {self.get_provider_name()}") from e
            except httpx.HTTPError as e:
                logs.log(logging.ERROR, f"{self.get_provider_name()} request failed: {str(e)}")
                raise UpstreamError(f"transport error calling {self.get_provider_name()}") from e
            except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
                logs.log(logging.ERROR, f"{self.get_provider_name()} sent an unexpected body: {str(e)}")
                raise UpstreamError(f"unexpected body from {self.get_provider_name()}") from e
        if not text:
            raise UpstreamError(f"empty reply from {self.get_provider_name()}")
        return text


class GeminiProvider(HttpLLMProvider):
    """Google Gemini through its OpenAI-compatible endpoint"""
    base_url = "https://generativelanguage.googleapis.com/v1beta/openai/chat/completions"

    def get_provider_name(self) -> str:
        return "Google Gemini"


class MistralProvider(HttpLLMProvider):
    base_url = "https://api.mistral.ai/v1/chat/completions"

    def get_provider_name(self) -> str:
        return "Mistral AI"


class OpenAIProvider(HttpLLMProvider):
    base_url = "https://api.openai.com/v1/chat/completions"

    def get_provider_name(self) -> str:
        return "OpenAI"


class GroqProvider(HttpLLMProvider):
    base_url = "https://api.groq.com/openai/v1/chat/completions"

    def get_provider_name(self) -> str:
        return "Groq"


class AnthropicProvider(HttpLLMProvider):
    """Anthropic Claude Provider"""
    base_url = "https://api.anthropic.com/v1/messages"

    def _headers(self) -> dict:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
            "Content-Type": "application/json",
        }

    def _payload(self, messages: list, temperature: float) -> dict:
        # The system prompt travels outside the message list
        payload = {
            "model": self.model,
            "messages": [m for m in messages if m["role"] != "system"],
            "temperature": temperature,
            "max_tokens": 1024,
        }
        system = [m["content"] for m in messages if m["role"] == "system"]
        if system:
            payload["system"] = "\n".join(system)
        return payload

    def _extract(self, data: dict) -> str:
        return data["content"][0]["text"]

    def get_provider_name(self) -> str:
        return "Anthropic Claude"


PROVIDERS = {
    "gemini": (GeminiProvider, "GEMINI"),
    "mistral": (MistralProvider, "MISTRAL"),
    "openai": (OpenAIProvider, "OPENAI"),
    "anthropic": (AnthropicProvider, "ANTHROPIC"),
    "groq": (GroqProvider, "GROQ"),
}
