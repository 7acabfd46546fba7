"""
Groups a flat, 3-hourly forecast series into calendar-day pages.

The day boundary is the city's local midnight: every UTC timestamp is
shifted by the city's timezone offset before its date is taken.
"""
import logging
from typing import List, Sequence

import pydantic

from weather_bot.core.errors import UpstreamError
from weather_bot.core.logger import logs
from weather_bot.models.weather_model import DayPage, WeatherSample


def _check_series(samples: Sequence[WeatherSample]):
    if not samples:
        raise UpstreamError("forecast contains no samples")

    tz_offset = samples[0].tz_offset
    for previous, current in zip(samples, samples[1:]):
        if current.timestamp < previous.timestamp:
            raise UpstreamError(
                f"forecast samples out of order at {current.timestamp.isoformat()}"
            )
        if current.tz_offset != tz_offset:
            raise UpstreamError(
                f"forecast timezone changed from {tz_offset} to {current.tz_offset}"
            )


def _seal(samples: List[WeatherSample]) -> DayPage:
    head = samples[0]
    return DayPage(
        date=head.local_date,
        city_name=head.city_name,
        country=head.country,
        coordinates=head.coordinates,
        tz_offset=head.tz_offset,
        samples=samples,
    )


def bucket_by_day(samples: Sequence[WeatherSample]) -> List[DayPage]:
    """
    Split time-sorted samples sharing one timezone into DayPages.

    Concatenating the samples of the returned pages gives back the input.
    Unsorted input, a timezone change mid-series or a page that fails
    validation raise UpstreamError: the forecast is then unavailable as
    a whole.
    """
    _check_series(samples)

    pages: List[DayPage] = []
    current: List[WeatherSample] = []
    current_day = samples[0].local_date

    try:
        for sample in samples:
            if sample.local_date != current_day:
                pages.append(_seal(current))
                current = []
                current_day = sample.local_date
            current.append(sample)
        pages.append(_seal(current))
    except pydantic.ValidationError as e:
        logs.log(logging.ERROR, f"Forecast page failed validation: {str(e)}")
        raise UpstreamError("malformed forecast page") from e

    logs.log(logging.DEBUG, f"Bucketed {len(samples)} samples into {len(pages)} pages")
    return pages
