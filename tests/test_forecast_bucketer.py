from datetime import date, datetime, timedelta, timezone

import pytest

from weather_bot.core.errors import UpstreamError
from weather_bot.services.forecast_bucketer import bucket_by_day
from tests.factories import DAY_START, make_sample, three_hourly

THREE_HOURS_EAST = 3 * 3600


class TestBucketByDay:
    """Regrouping of the 3-hourly series into local calendar days."""

    def test_ten_samples_over_two_local_days(self):
        # Local midnight at UTC+3 is 21:00 UTC of the previous day
        start = datetime(2024, 3, 4, 21, 0, tzinfo=timezone.utc)
        samples = three_hourly(start, 10, tz_offset=THREE_HOURS_EAST)

        pages = bucket_by_day(samples)

        assert len(pages) == 2
        assert pages[0].date == date(2024, 3, 5)
        assert len(pages[0].samples) == 8
        assert pages[1].date == date(2024, 3, 6)
        assert len(pages[1].samples) == 2
        assert [s.local_time.hour for s in pages[0].samples] == [0, 3, 6, 9, 12, 15, 18, 21]

    def test_pages_partition_the_input(self):
        samples = three_hourly(DAY_START + timedelta(hours=6), 40, tz_offset=-5 * 3600)

        pages = bucket_by_day(samples)

        flattened = [s for page in pages for s in page.samples]
        assert flattened == samples
        for page in pages:
            assert {s.local_date for s in page.samples} == {page.date}
        assert [p.date for p in pages] == sorted(p.date for p in pages)

    def test_same_input_gives_same_pages(self):
        samples = three_hourly(DAY_START, 17)
        assert bucket_by_day(samples) == bucket_by_day(samples)

    def test_single_sample_is_one_page(self):
        pages = bucket_by_day([make_sample(DAY_START)])
        assert len(pages) == 1
        assert len(pages[0].samples) == 1

    def test_one_day_gives_one_page(self):
        pages = bucket_by_day(three_hourly(DAY_START, 8))
        assert len(pages) == 1
        assert pages[0].date == date(2024, 3, 5)

    def test_page_carries_city_metadata(self):
        page = bucket_by_day(three_hourly(DAY_START, 2, tz_offset=3600))[0]
        assert page.city_name == "Paris"
        assert page.country == "FR"
        assert page.tz_offset == 3600

    def test_negative_offset_moves_early_utc_hours_to_previous_day(self):
        pages = bucket_by_day([
            make_sample(DAY_START + timedelta(hours=2), tz_offset=-5 * 3600),
            make_sample(DAY_START + timedelta(hours=5), tz_offset=-5 * 3600),
        ])
        assert [p.date for p in pages] == [date(2024, 3, 4), date(2024, 3, 5)]

    def test_empty_input_is_rejected(self):
        with pytest.raises(UpstreamError):
            bucket_by_day([])

    def test_unsorted_input_is_rejected(self):
        samples = three_hourly(DAY_START, 4)
        samples[1], samples[2] = samples[2], samples[1]
        with pytest.raises(UpstreamError):
            bucket_by_day(samples)

    def test_timezone_change_is_rejected(self):
        samples = [make_sample(DAY_START), make_sample(DAY_START + timedelta(hours=3), tz_offset=3600)]
        with pytest.raises(UpstreamError):
            bucket_by_day(samples)
