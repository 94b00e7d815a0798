import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from time_buckets import (
    WEEK,
    day_key,
    in_range,
    month_start,
    next_month_start,
    parse_timestamp,
    week_end,
    week_start,
    week_windows,
)

UTC = datetime.timezone.utc


def test_week_starts_on_monday():
    sunday_night = datetime.datetime(2024, 5, 19, 23, 59, tzinfo=UTC)
    assert week_start(sunday_night) == datetime.datetime(2024, 5, 13, tzinfo=UTC)
    monday = datetime.datetime(2024, 5, 13, tzinfo=UTC)
    assert week_start(monday) == monday
    assert week_end(monday) == monday + WEEK


def test_week_start_uses_local_calendar():
    # Monday 02:00 UTC is still Sunday evening in New York
    moment = datetime.datetime(2024, 5, 13, 2, 0, tzinfo=UTC)
    start = week_start(moment, "America/New_York")
    assert start.date() == datetime.date(2024, 5, 6)
    assert start.hour == 0
    assert day_key(moment, "America/New_York") == "2024-05-12"
    assert day_key(moment) == "2024-05-13"


def test_month_bounds_roll_over_year():
    moment = datetime.datetime(2023, 12, 31, 18, tzinfo=UTC)
    assert month_start(moment) == datetime.datetime(2023, 12, 1, tzinfo=UTC)
    assert next_month_start(moment) == datetime.datetime(2024, 1, 1, tzinfo=UTC)


def test_week_windows_oldest_first_and_contiguous():
    now = datetime.datetime(2024, 5, 15, 12, tzinfo=UTC)
    windows = week_windows(now, 8)
    assert len(windows) == 8
    assert windows[-1][0] == week_start(now)
    assert windows[0][0] == week_start(now) - WEEK * 7
    for (_, end), (start, _) in zip(windows, windows[1:]):
        assert end == start
    assert week_windows(now, 0) == []
    with pytest.raises(ValueError):
        week_windows(now, -1)


def test_in_range_is_half_open():
    start = datetime.datetime(2024, 5, 13, tzinfo=UTC)
    end = start + WEEK
    assert in_range(start, start, end)
    assert not in_range(end, start, end)


def test_parse_timestamp_reads_naive_as_utc():
    assert parse_timestamp("2024-05-13T07:00:00") == datetime.datetime(
        2024, 5, 13, 7, tzinfo=UTC
    )
    aware = parse_timestamp("2024-05-13T07:00:00+02:00")
    assert aware.utcoffset() == datetime.timedelta(hours=2)
