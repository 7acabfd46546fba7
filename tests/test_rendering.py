from datetime import datetime, timedelta, timezone

import pytest

from weather_bot.core.errors import StateIntegrityError
from weather_bot.models.store_model import Subscription
from weather_bot.services.forecast_bucketer import bucket_by_day
from weather_bot.services.localization import resolve, short_date, supported_language
from weather_bot.services.message_state import SubscriptionState, WeatherState, decode_state
from weather_bot.services.rendering import (
    page_keyboard, render_add_city_prompt, render_add_time_prompt, render_candidates,
    render_current_weather, render_day_page, render_forecast_page, render_subscription_card,
    split_message, weather_keyboard,
)
from tests.factories import CHAT_ID, DAY_START, PARIS, make_sample, springfields, three_hourly


@pytest.fixture
def pages():
    return bucket_by_day(three_hourly(DAY_START, 24))


def tokens(keyboard):
    return [button.token for row in keyboard for button in row]


class TestPagination:
    def test_first_page_only_goes_forward(self, pages):
        assert tokens(page_keyboard(pages, 0, "en")) == ["FI:1"]

    def test_last_page_only_goes_back(self, pages):
        assert tokens(page_keyboard(pages, 2, "en")) == ["FI:1"]
        assert page_keyboard(pages, 2, "en")[0][0].text.startswith("👈")

    def test_middle_page_goes_both_ways(self, pages):
        keyboard = page_keyboard(pages, 1, "en")
        assert tokens(keyboard) == ["FI:0", "FI:2"]
        assert keyboard[0][1].text == "👉 07 Mar"

    def test_single_page_has_no_buttons(self):
        single = bucket_by_day(three_hourly(DAY_START, 4))
        assert page_keyboard(single, 0, "en") == []

    @pytest.mark.parametrize("index", [-1, 3, 10])
    def test_out_of_range_page_is_rejected(self, pages, index):
        with pytest.raises(StateIntegrityError):
            render_forecast_page(pages, index, "en")


class TestDayPage:
    def test_full_form_lists_every_sample(self, pages):
        text = render_day_page(pages[0], "en", full_forecast=True)
        assert text.startswith("<b>Paris:\t05.03.2024</b>")
        assert text.count(":</b>\n") == 8
        assert "Chance of precipitation" in text

    def test_short_form_lists_every_other_sample(self, pages):
        text = render_day_page(pages[0], "en", full_forecast=False)
        assert text.count(":</b>\n") == 4
        assert "<b>03:00:</b>" not in text
        assert "Pressure" not in text

    def test_sample_times_are_local(self):
        page = bucket_by_day(three_hourly(DAY_START, 2, tz_offset=2 * 3600))[0]
        assert "<b>02:00:</b>" in render_day_page(page, "en")


class TestCards:
    def test_weather_card_carries_coordinates(self):
        sample = make_sample(
            datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc),
            sunrise=datetime(2024, 3, 5, 6, 5, tzinfo=timezone.utc),
            city_name="Paris & Co",
        )
        text = render_current_weather(sample, "en")

        assert "Paris &amp; Co" in text
        assert "<b>Sunrise:</b> 06:05" in text
        assert decode_state(text) == WeatherState(coordinates=PARIS)
        assert tokens(weather_keyboard("en")) == ["F"]

    def test_missing_fields_are_skipped(self):
        sample = make_sample(DAY_START, wind_gust=None, rain=None, visibility=None)
        text = render_current_weather(sample, "en")
        assert "Wind gust" not in text
        assert "Visibility" not in text

    def test_candidate_list(self):
        text, keyboard = render_candidates(springfields(3), "en")
        assert "3. Springfield, State 2, US" in text
        assert tokens(keyboard) == ["C:0", "C:1", "C:2"]

        _, keyboard = render_candidates(springfields(2), "en", for_subscription=True)
        assert tokens(keyboard) == ["CS:0", "CS:1"]

    def test_subscription_card(self):
        subscription = Subscription(chat_id=CHAT_ID, city_name="Paris", coordinates=PARIS, time="07:30", language="en")
        text, keyboard = render_subscription_card(subscription, "en")

        assert decode_state(text) == SubscriptionState(coordinates=PARIS, time="07:30")
        assert tokens(keyboard) == ["RS"]

    def test_prompts_start_with_their_state(self):
        assert render_add_city_prompt("en").startswith("AddCity v1\n")
        assert render_add_time_prompt(PARIS, "ru").startswith("AddTime v1 lon=2.348800 lat=48.853400\n")


class TestLocalization:
    def test_region_variant_uses_primary_language(self):
        assert supported_language("ru-RU") == "ru"

    def test_unsupported_language_falls_back(self):
        assert supported_language("xx") == "en"
        assert resolve(None, "forecastButton") == "Forecast"

    def test_missing_key_is_state_integrity_error(self):
        with pytest.raises(StateIntegrityError):
            resolve("en", "noSuchKey")

    def test_short_date(self):
        day = (DAY_START + timedelta(days=1)).date()
        assert short_date(day, "en") == "06 Mar"
        assert short_date(day, "ru") == "06 мар"


class TestSplitMessage:
    def test_chunks_respect_size_and_keep_text(self):
        text = "\n".join(f"line {i}" for i in range(100))
        chunks = split_message(text, 50)
        assert all(len(c) <= 50 for c in chunks)
        assert "".join(chunks) == text

    def test_long_line_is_cut(self):
        chunks = split_message("x" * 120, 50)
        assert [len(c) for c in chunks] == [50, 50, 20]

    def test_short_text_is_one_chunk(self):
        assert split_message("hello", 4090) == ["hello"]
