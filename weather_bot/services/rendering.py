"""
Turns weather data and conversation steps into message text and inline
keyboards. Messages are Telegram HTML; state lines come from
message_state so they can be parsed back from the echoed text.
"""
from html import escape
from typing import List, Optional, Sequence, Tuple

from weather_bot.core.errors import StateIntegrityError
from weather_bot.models.base_model import InlineButton, Keyboard
from weather_bot.models.store_model import Subscription
from weather_bot.models.weather_model import CityCandidate, Coordinates, DayPage, WeatherSample
from weather_bot.services import callback_token
from weather_bot.services.callback_token import TokenAction
from weather_bot.services.localization import resolve, short_date
from weather_bot.services.message_state import (
    encode_state, AddCityState, AddTimeState, WeatherState, SubscriptionState,
)

BACK_ARROW = "👈"
FORWARD_ARROW = "👉"


def _line(language: str, key: str, value, unit_key: Optional[str] = None, unit: str = "", indent: str = "") -> str:
    if unit_key:
        unit = resolve(language, unit_key)
    return f"{indent}<b>{resolve(language, key)}:</b> {escape(str(value))}{unit}\n"


def _optional_lines(language: str, fields: Sequence[Tuple[str, object, Optional[str], str]], indent: str = "") -> str:
    """Lines for the fields the provider sent; None values are skipped."""
    return "".join(
        _line(language, key, value, unit_key, unit, indent)
        for key, value, unit_key, unit in fields
        if value is not None
    )


def _percent(pop: Optional[float]) -> Optional[int]:
    return None if pop is None else round(pop * 100)


# ===== Current weather =====

def render_current_weather(sample: WeatherSample, language: str) -> str:
    text = f"<b>{resolve(language, 'currentWeatherIn')} {escape(sample.city_name)}, {escape(sample.country)}</b>\n"
    text += _line(language, "description", sample.description)
    text += _line(language, "temperature", sample.temp, unit="°C")
    text += _line(language, "feelsLike", sample.feels_like, unit="°C")
    text += _optional_lines(language, [
        ("pressure", sample.pressure, "hPa", ""),
        ("humidity", sample.humidity, None, "%"),
        ("visibility", sample.visibility, "m", ""),
        ("windSpeed", sample.wind_speed, "ms", ""),
        ("windDirection", sample.wind_deg, None, "°"),
        ("windGust", sample.wind_gust, "ms", ""),
        ("cloudiness", sample.clouds, None, "%"),
        ("rain", sample.rain, "mmH", ""),
        ("snow", sample.snow, "mmH", ""),
    ])
    if sample.sunrise is not None:
        text += _line(language, "sunrise", sample.to_local(sample.sunrise).strftime("%H:%M"))
    if sample.sunset is not None:
        text += _line(language, "sunset", sample.to_local(sample.sunset).strftime("%H:%M"))
    return text + encode_state(WeatherState(coordinates=sample.coordinates))


def weather_keyboard(language: str) -> Keyboard:
    return [[InlineButton(text=resolve(language, "forecastButton"), token=callback_token.encode(TokenAction.FORECAST))]]


# ===== Disambiguation =====

def candidate_label(candidate: CityCandidate) -> str:
    parts = [candidate.name]
    if candidate.state:
        parts.append(candidate.state)
    parts.append(candidate.country)
    return ", ".join(parts)


def render_candidates(
    candidates: Sequence[CityCandidate], language: str, for_subscription: bool = False
) -> Tuple[str, Keyboard]:
    """Numbered candidate list; button i selects candidates[i]."""
    action = TokenAction.CITY_SUBSCRIPTION if for_subscription else TokenAction.CITY
    text = resolve(language, "chooseCity") + "\n"
    keyboard: Keyboard = []
    for i, candidate in enumerate(candidates):
        label = f"{i + 1}. {candidate_label(candidate)}"
        text += escape(label) + "\n"
        keyboard.append([InlineButton(text=label, token=callback_token.encode(action, i))])
    return text.rstrip("\n"), keyboard


# ===== Forecast =====

def _full_sample(sample: WeatherSample, language: str) -> str:
    text = f"<b>{sample.local_time.strftime('%H:%M')}:</b>\n"
    text += _line(language, "description", sample.description, indent="\t")
    text += _line(language, "temperature", sample.temp, unit="°C", indent="\t")
    text += _line(language, "feelsLike", sample.feels_like, unit="°C", indent="\t")
    text += _optional_lines(language, [
        ("pressure", sample.pressure, "hPa", ""),
        ("humidity", sample.humidity, None, "%"),
        ("visibility", sample.visibility, "m", ""),
        ("windSpeed", sample.wind_speed, "ms", ""),
        ("windDirection", sample.wind_deg, None, "°"),
        ("windGust", sample.wind_gust, "ms", ""),
        ("pop", _percent(sample.pop), None, "%"),
        ("rain", sample.rain, "mm3H", ""),
        ("snow", sample.snow, "mm3H", ""),
    ], indent="\t")
    return text


def _short_sample(sample: WeatherSample, language: str) -> str:
    text = f"<b>{sample.local_time.strftime('%H:%M')}:</b>\n"
    text += _line(language, "description", sample.description, indent="\t")
    text += _line(language, "temperature", sample.temp, unit="°C", indent="\t")
    text += _optional_lines(language, [
        ("windSpeed", sample.wind_speed, "ms", ""),
        ("rain", sample.rain, "mm3H", ""),
        ("snow", sample.snow, "mm3H", ""),
    ], indent="\t")
    return text


def render_day_page(page: DayPage, language: str, full_forecast: bool = True) -> str:
    """
    One day of forecast. The short form shows every other sample
    (6-hourly) with fewer fields.
    """
    text = f"<b>{escape(page.city_name)}:\t{page.date.strftime('%d.%m.%Y')}</b>\n"
    if full_forecast:
        return text + "".join(_full_sample(s, language) for s in page.samples)
    return text + "".join(_short_sample(s, language) for s in page.samples[::2])


def page_keyboard(pages: Sequence[DayPage], index: int, language: str) -> Keyboard:
    """Back button only when a previous page exists, forward only when a next one does."""
    row: List[InlineButton] = []
    if index > 0:
        row.append(InlineButton(
            text=f"{BACK_ARROW} {short_date(pages[index - 1].date, language)}",
            token=callback_token.encode(TokenAction.FORECAST_PAGE, index - 1),
        ))
    if index + 1 < len(pages):
        row.append(InlineButton(
            text=f"{FORWARD_ARROW} {short_date(pages[index + 1].date, language)}",
            token=callback_token.encode(TokenAction.FORECAST_PAGE, index + 1),
        ))
    return [row] if row else []


def render_forecast_page(
    pages: Sequence[DayPage], index: int, language: str, full_forecast: bool = True
) -> Tuple[str, Keyboard]:
    if not 0 <= index < len(pages):
        raise StateIntegrityError(f"forecast page {index} out of range 0..{len(pages) - 1}")
    return render_day_page(pages[index], language, full_forecast), page_keyboard(pages, index, language)


# ===== Subscriptions =====

def render_add_city_prompt(language: str) -> str:
    return encode_state(AddCityState()) + "\n" + resolve(language, "addCityPrompt")


def render_add_time_prompt(coordinates: Coordinates, language: str) -> str:
    return encode_state(AddTimeState(coordinates=coordinates)) + "\n" + resolve(language, "addTimePrompt")


def render_subscription_card(subscription: Subscription, language: str) -> Tuple[str, Keyboard]:
    text = resolve(language, "subscriptionCard", city=escape(subscription.city_name), time=subscription.time)
    text += "\n" + encode_state(SubscriptionState(coordinates=subscription.coordinates, time=subscription.time))
    keyboard = [[InlineButton(
        text=resolve(language, "cancelSubscriptionButton"),
        token=callback_token.encode(TokenAction.REMOVE_SUBSCRIPTION),
    )]]
    return text, keyboard


def split_message(text: str, chunk_size: int) -> List[str]:
    """Split on line breaks into chunks of at most `chunk_size` characters."""
    chunks: List[str] = []
    current = ""
    for line in text.splitlines(keepends=True):
        while len(line) > chunk_size:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:chunk_size])
            line = line[chunk_size:]
        if len(current) + len(line) > chunk_size:
            chunks.append(current)
            current = ""
        current += line
    if current:
        chunks.append(current)
    return chunks
