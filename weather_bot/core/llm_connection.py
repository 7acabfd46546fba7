import html
import logging
import random
import re
from typing import Optional

from weather_bot.core.config import settings
from weather_bot.core.errors import UpstreamError
from weather_bot.core.logger import logs
from weather_bot.core.llm_providers import PROVIDERS, BaseLLMProvider

STYLES = (
    "Classic Realism", "Romanticism", "Symbolism", "Acmeism", "Futurism",
    "Socialist Realism", "Postmodernism", "Gothic Fiction", "Stream of Consciousness", "Minimalism",
    "Lyric Poetry", "Satire", "Philosophical Prose", "Historical Fiction", "Children's Literature",
    "Epistolary Style", "Magical Realism", "Dystopian Fiction", "Travel Writing", "Psychological Realism",
)

LANGUAGES = {
    "en": "in American English",
    "ru": "in Russian",
}

TAG = re.compile(r"<[^>]+>")


def provider_from_settings() -> Optional[BaseLLMProvider]:
    """The provider named by LLM_PROVIDER, or None when the rewrite is switched off."""
    if not settings.LLM_PROVIDER:
        return None
    name = settings.LLM_PROVIDER.lower()
    if name not in PROVIDERS:
        logs.log(logging.WARNING, f"Unknown LLM provider '{name}', forecasts stay plain")
        return None
    provider_class, prefix = PROVIDERS[name]
    api_key = getattr(settings, f"{prefix}_API_KEY")
    if not api_key:
        logs.log(logging.WARNING, f"{prefix}_API_KEY is not set, forecasts stay plain")
        return None
    return provider_class(api_key=api_key, model=getattr(settings, f"{prefix}_MODEL"))


class LLMService:
    """
    Retells the daily forecast page as a short piece of prose in a randomly
    picked literary style. Without a provider, or when the provider fails,
    the page is returned untouched.
    """
    def __init__(self, provider: Optional[BaseLLMProvider] = None, timeout: Optional[float] = None):
        self.provider = provider
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        if provider:
            logs.log(logging.INFO, f"🤖 LLM Provider initialized: {provider.get_provider_name()}")

    @classmethod
    def from_settings(cls) -> "LLMService":
        return cls(provider_from_settings())

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    async def rewrite_forecast(self, page: str, language: str) -> str:
        """`page` is the rendered HTML day page; the result is HTML-safe as well."""
        if not self.provider:
            return page

        style = random.choice(STYLES)
        system_prompt = (
            "Convert the following 3-hour weather forecast into a natural language summary of the day "
            f"in the style of {style}, {LANGUAGES.get(language, LANGUAGES['en'])}. "
            "Keep every temperature, the wind and the precipitation. "
            "Return only the summary as plain text without markup."
        )
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": html.unescape(TAG.sub("", page))},
        ]

        try:
            content = await self.provider.generate(messages, temperature=0.9, timeout=self.timeout)
        except UpstreamError as e:
            logs.log(logging.WARNING, f"Forecast rewrite failed, sending the plain page: {str(e)}")
            return page

        logs.log(logging.INFO, f"Forecast rewritten as {style}")
        return html.escape(content, quote=False)
