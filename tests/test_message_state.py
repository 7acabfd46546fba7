import pytest

from weather_bot.core.errors import StateIntegrityError
from weather_bot.models.weather_model import Coordinates
from weather_bot.services.message_state import (
    AddCityState, AddTimeState, SubscriptionState, WeatherState, decode_state, encode_state,
)
from tests.factories import PARIS


class TestEncodeState:
    def test_coordinates_use_six_decimals(self):
        assert encode_state(AddTimeState(coordinates=PARIS)) == "AddTime v1 lon=2.348800 lat=48.853400"

    def test_subscription_line(self):
        line = encode_state(SubscriptionState(coordinates=PARIS, time="07:30"))
        assert line == "Subscription v1 lon=2.348800 lat=48.853400 time=07:30"

    def test_add_city_has_no_payload(self):
        assert encode_state(AddCityState()) == "AddCity v1"


class TestDecodeState:
    def test_prompt_state_on_first_line(self):
        state = decode_state("AddTime v1 lon=2.348800 lat=48.853400\nReply with the time")
        assert isinstance(state, AddTimeState)
        assert state.coordinates == PARIS

    def test_card_state_on_last_line(self):
        text = "Current weather in Paris, FR\nTemperature: 10°C\nWeather v1 lon=2.348800 lat=48.853400"
        state = decode_state(text)
        assert isinstance(state, WeatherState)
        assert state.coordinates == PARIS

    def test_subscription_card(self):
        state = decode_state("Daily forecast for Paris at 07:30 UTC\nSubscription v1 lon=-0.5 lat=10 time=07:30")
        assert state == SubscriptionState(coordinates=Coordinates(lon=-0.5, lat=10), time="07:30")

    def test_add_city_prompt(self):
        assert isinstance(decode_state("AddCity v1\nReply with the city"), AddCityState)

    @pytest.mark.parametrize("text", [
        None,
        "",
        "Hello there",
        "Weather is fine today",
        "Weather v2 lon=1 lat=2",
        "AddCity version1",
        "Temperature: 10\nWeather",
    ])
    def test_no_state_fails_closed(self, text):
        assert decode_state(text) is None

    @pytest.mark.parametrize("text", [
        "Weather v1 lon=abc lat=1",
        "Weather v1 lon=1",
        "AddTime v1 lon=200 lat=1",
        "Subscription v1 lon=1 lat=2 time=25:00",
        "Subscription v1 lon=1 lat=2",
        "Weather v1 lon=1 lat=2 city=Paris",
        "Weather v1 lon=1 lon=2 lat=2",
        "AddTime v1 lon",
    ])
    def test_broken_payload_raises(self, text):
        with pytest.raises(StateIntegrityError):
            decode_state(text)
