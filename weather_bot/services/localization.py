"""
Built-in message catalogues and language fallback.
"""
from datetime import date
from typing import Optional

from weather_bot.core.config import settings
from weather_bot.core.errors import StateIntegrityError

FALLBACK_LANGUAGE = "en"

MESSAGES = {
    "en": {
        # commands
        "startCommandDescription": "Start the bot",
        "helpCommandDescription": "How to use the bot",
        "subscriptionsCommandDescription": "Your daily forecasts",
        "subscriptionsCommandAddCityDescription": "Add a daily forecast",
        "settingsCommandChangeForecastTypeDescription": "Switch full / short forecast",
        "startCommandAnswer": (
            "Hi! Send me a city name and I will tell you the weather there.\n"
            "Use /subscriptions_add to get a forecast every day."
        ),
        "helpCommandAnswer": (
            "Send a city name to get the current weather, then press "
            "\"Forecast\" for the next days.\n"
            "/subscriptions - list your daily forecasts\n"
            "/subscriptions_add - add a daily forecast\n"
            "/change_forecast_type - switch between full and short forecast"
        ),
        "unknownCommandAnswer": "Unknown command. Try /help.",
        "ForecastTypeFull": "Forecast type: full",
        "ForecastTypeShort": "Forecast type: short",
        # flows
        "defaultError": "Something went wrong. Please try again later.",
        "invalidCityName": "A city name may contain letters, spaces, apostrophes and hyphens, up to 25 characters.",
        "unknownCity": "I could not find this city.",
        "chooseCity": "Several cities match, please choose one:",
        "forecastButton": "Forecast",
        "addCityPrompt": "Reply with the name of the city for the daily forecast.",
        "addTimePrompt": "Reply with the time for the daily forecast in UTC, for example 07:30.",
        "invalidTime": "Please send the time as HH:MM, for example 07:30.",
        "subscriptionAdded": "Daily forecast for {city} at {time} UTC added.",
        "subscriptionAlreadyExists": "You already have this forecast at that time.",
        "subscriptionCard": "Daily forecast for {city} at {time} UTC",
        "subscriptionRemoved": "Daily forecast at {time} UTC removed.",
        "cancelSubscriptionButton": "Cancel",
        "noSubscriptions": "You have no daily forecasts. Use /subscriptions_add to add one.",
        # weather card
        "currentWeatherIn": "Current weather in",
        "description": "Description",
        "temperature": "Temperature",
        "feelsLike": "Feels like",
        "pressure": "Pressure",
        "humidity": "Humidity",
        "visibility": "Visibility",
        "windSpeed": "Wind speed",
        "windDirection": "Wind direction",
        "windGust": "Wind gust",
        "cloudiness": "Cloudiness",
        "pop": "Chance of precipitation",
        "rain": "Rain",
        "snow": "Snow",
        "sunrise": "Sunrise",
        "sunset": "Sunset",
        # units
        "hPa": " hPa",
        "m": " m",
        "ms": " m/s",
        "mmH": " mm/h",
        "mm3H": " mm/3h",
        "months": "Jan Feb Mar Apr May Jun Jul Aug Sep Oct Nov Dec",
    },
    "ru": {
        "startCommandDescription": "Запустить бота",
        "helpCommandDescription": "Как пользоваться ботом",
        "subscriptionsCommandDescription": "Ваши ежедневные прогнозы",
        "subscriptionsCommandAddCityDescription": "Добавить ежедневный прогноз",
        "settingsCommandChangeForecastTypeDescription": "Полный / краткий прогноз",
        "startCommandAnswer": (
            "Привет! Отправьте название города, и я расскажу о погоде в нём.\n"
            "Команда /subscriptions_add включит ежедневный прогноз."
        ),
        "helpCommandAnswer": (
            "Отправьте название города, чтобы узнать текущую погоду, затем нажмите "
            "«Прогноз» для следующих дней.\n"
            "/subscriptions - ваши ежедневные прогнозы\n"
            "/subscriptions_add - добавить ежедневный прогноз\n"
            "/change_forecast_type - полный или краткий прогноз"
        ),
        "unknownCommandAnswer": "Неизвестная команда. Попробуйте /help.",
        "ForecastTypeFull": "Тип прогноза: полный",
        "ForecastTypeShort": "Тип прогноза: краткий",
        "defaultError": "Что-то пошло не так. Попробуйте позже.",
        "invalidCityName": "Название города может содержать буквы, пробелы, апострофы и дефисы, не длиннее 25 символов.",
        "unknownCity": "Не удалось найти такой город.",
        "chooseCity": "Подходит несколько городов, выберите один:",
        "forecastButton": "Прогноз",
        "addCityPrompt": "Ответьте названием города для ежедневного прогноза.",
        "addTimePrompt": "Ответьте временем ежедневного прогноза по UTC, например 07:30.",
        "invalidTime": "Отправьте время в формате ЧЧ:ММ, например 07:30.",
        "subscriptionAdded": "Ежедневный прогноз для {city} в {time} UTC добавлен.",
        "subscriptionAlreadyExists": "У вас уже есть этот прогноз на это время.",
        "subscriptionCard": "Ежедневный прогноз для {city} в {time} UTC",
        "subscriptionRemoved": "Ежедневный прогноз в {time} UTC удалён.",
        "cancelSubscriptionButton": "Отменить",
        "noSubscriptions": "У вас нет ежедневных прогнозов. Добавьте их командой /subscriptions_add.",
        "currentWeatherIn": "Текущая погода в",
        "description": "Описание",
        "temperature": "Температура",
        "feelsLike": "Ощущается как",
        "pressure": "Давление",
        "humidity": "Влажность",
        "visibility": "Видимость",
        "windSpeed": "Скорость ветра",
        "windDirection": "Направление ветра",
        "windGust": "Порывы ветра",
        "cloudiness": "Облачность",
        "pop": "Вероятность осадков",
        "rain": "Дождь",
        "snow": "Снег",
        "sunrise": "Восход",
        "sunset": "Закат",
        "hPa": " гПа",
        "m": " м",
        "ms": " м/с",
        "mmH": " мм/ч",
        "mm3H": " мм/3ч",
        "months": "янв фев мар апр мая июн июл авг сен окт ноя дек",
    },
}


def supported_language(language: Optional[str]) -> str:
    """'en-GB' -> 'en'; unknown languages fall back to the default one."""
    primary = (language or "").split("-", 1)[0].split("_", 1)[0].lower()
    if primary in MESSAGES:
        return primary
    if settings.DEFAULT_LANGUAGE in MESSAGES:
        return settings.DEFAULT_LANGUAGE
    return FALLBACK_LANGUAGE


def resolve(language: Optional[str], key: str, **values) -> str:
    catalogue = MESSAGES[supported_language(language)]
    try:
        text = catalogue[key]
    except KeyError as e:
        raise StateIntegrityError(f"missing message {key!r}") from e
    return text.format(**values) if values else text


def short_date(day: date, language: Optional[str]) -> str:
    """Pagination label, e.g. '05 Mar'."""
    months = resolve(language, "months").split()
    return f"{day.day:02d} {months[day.month - 1]}"
