import json
from unittest.mock import AsyncMock

import httpx
import pytest

from weather_bot.core.config import settings
from weather_bot.core.errors import UpstreamError
from weather_bot.core.llm_connection import STYLES, LLMService, provider_from_settings
from weather_bot.core.llm_providers import AnthropicProvider, BaseLLMProvider, GeminiProvider, MistralProvider

PAGE = "<b>Paris, 05.03.2024</b>\n03:00 9.5°C overcast clouds &amp; wind 3.2 m/s"


def completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class TestProviders:
    @pytest.mark.asyncio
    async def test_chat_completions_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion("  A grey morning in Paris.  "))

        provider = GeminiProvider(api_key="k", model="gemini-1.5-flash", transport=httpx.MockTransport(handler))
        text = await provider.generate([{"role": "user", "content": "hi"}], temperature=0.5)

        assert text == "A grey morning in Paris."
        assert seen["url"] == GeminiProvider.base_url
        assert seen["auth"] == "Bearer k"
        assert seen["body"] == {"model": "gemini-1.5-flash", "messages": [{"role": "user", "content": "hi"}], "temperature": 0.5}

    @pytest.mark.asyncio
    async def test_anthropic_takes_system_prompt_apart(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers["x-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"content": [{"type": "text", "text": "Rain again."}]})

        provider = AnthropicProvider(api_key="k", model="claude", transport=httpx.MockTransport(handler))
        text = await provider.generate([{"role": "system", "content": "Be brief"}, {"role": "user", "content": "hi"}])

        assert text == "Rain again."
        assert seen["key"] == "k"
        assert seen["body"]["system"] == "Be brief"
        assert seen["body"]["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(429, json={"error": "rate limited"}),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json=completion("   ")),
    ])
    async def test_failures_become_upstream_errors(self, response):
        provider = MistralProvider(api_key="k", model="m", transport=httpx.MockTransport(lambda request: response))

        with pytest.raises(UpstreamError):
            await provider.generate([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        provider = MistralProvider(api_key="k", model="m", transport=httpx.MockTransport(handler))

        with pytest.raises(UpstreamError):
            await provider.generate([{"role": "user", "content": "hi"}])


class TestProviderFromSettings:
    def test_unset_provider_disables_rewrite(self, monkeypatch):
        monkeypatch.setattr(settings, "LLM_PROVIDER", None)
        assert provider_from_settings() is None

    def test_missing_key_disables_rewrite(self, monkeypatch):
        monkeypatch.setattr(settings, "LLM_PROVIDER", "gemini")
        monkeypatch.setattr(settings, "GEMINI_API_KEY", None)
        assert provider_from_settings() is None

    def test_unknown_provider_disables_rewrite(self, monkeypatch):
        monkeypatch.setattr(settings, "LLM_PROVIDER", "eliza")
        assert provider_from_settings() is None

    def test_configured_provider(self, monkeypatch):
        monkeypatch.setattr(settings, "LLM_PROVIDER", "Mistral")
        monkeypatch.setattr(settings, "MISTRAL_API_KEY", "k")
        monkeypatch.setattr(settings, "MISTRAL_MODEL", "mistral-small-latest")

        provider = provider_from_settings()

        assert isinstance(provider, MistralProvider)
        assert provider.model == "mistral-small-latest"


@pytest.fixture
def provider() -> AsyncMock:
    mock = AsyncMock(spec=BaseLLMProvider)
    mock.get_provider_name.return_value = "Test"
    return mock


class TestRewriteForecast:
    @pytest.mark.asyncio
    async def test_rewrite_uses_plain_page_and_language(self, provider):
        provider.generate.return_value = "Paris wakes under <grey> skies & light wind."

        text = await LLMService(provider).rewrite_forecast(PAGE, "ru")

        assert text == "Paris wakes under &lt;grey&gt; skies &amp; light wind."
        messages = provider.generate.await_args.args[0]
        assert "in Russian" in messages[0]["content"]
        assert any(style in messages[0]["content"] for style in STYLES)
        assert messages[1]["content"] == "Paris, 05.03.2024\n03:00 9.5°C overcast clouds & wind 3.2 m/s"

    @pytest.mark.asyncio
    async def test_failure_returns_page(self, provider):
        provider.generate.side_effect = UpstreamError("status 503 from Test")

        assert await LLMService(provider).rewrite_forecast(PAGE, "en") == PAGE

    @pytest.mark.asyncio
    async def test_without_provider_returns_page(self):
        service = LLMService(None)

        assert not service.enabled
        assert await service.rewrite_forecast(PAGE, "en") == PAGE
