from datetime import date, datetime, timezone

import pytest

from ski_history.config import ResortSettings, ScheduleConfig, resolve_resort
from ski_history.localtime import MonthDay, format_clock, local_date_iso, parse_clock
from ski_history.scheduling import (
    is_in_scraping_window,
    is_in_season,
    is_in_season_on,
    season_bounds,
)


def make_resort(**overrides):
    settings = ResortSettings(key="hill", name="Hill", timezone=overrides.pop("timezone", "UTC"), **overrides)
    return resolve_resort(settings, ScheduleConfig())


@pytest.mark.parametrize(
    "today, expected",
    [
        (date(2025, 4, 15), True),
        (date(2025, 5, 2), False),
        (date(2025, 5, 1), False),
        (date(2024, 11, 1), True),
        (date(2024, 10, 31), False),
        (date(2024, 12, 31), True),
        (date(2025, 1, 1), True),
    ],
)
def test_default_season_is_start_inclusive_end_exclusive(today, expected):
    assert is_in_season_on(make_resort(), today) is expected


def test_season_bounds_pivot_on_start_month():
    resort = make_resort()

    assert season_bounds(resort, date(2024, 11, 20)) == (date(2024, 11, 1), date(2025, 5, 1))
    assert season_bounds(resort, date(2025, 3, 10)) == (date(2024, 11, 1), date(2025, 5, 1))


def test_same_year_season_does_not_wrap():
    resort = make_resort(season_start="06-07", season_end="10-06", timezone="Australia/Sydney")

    assert is_in_season_on(resort, date(2025, 7, 1))
    assert not is_in_season_on(resort, date(2025, 10, 6))
    assert not is_in_season_on(resort, date(2025, 1, 15))


def test_season_uses_resort_local_date():
    resort = make_resort(timezone="America/Denver")
    # 05:00 UTC on May 1 is still April 30 in Denver.
    assert is_in_season(resort, datetime(2025, 5, 1, 5, 0, tzinfo=timezone.utc))
    assert not is_in_season(resort, datetime(2025, 5, 1, 7, 0, tzinfo=timezone.utc))


def test_scraping_window_is_half_open():
    resort = make_resort(timezone="Etc/GMT+7")

    def at(hour):
        return datetime(2025, 1, 10, hour + 7, 0, tzinfo=timezone.utc)

    assert not is_in_scraping_window(resort, at(6))
    assert is_in_scraping_window(resort, at(7))
    assert is_in_scraping_window(resort, at(9))
    assert not is_in_scraping_window(resort, at(10))


def test_scraping_window_wraps_midnight():
    settings = ResortSettings(key="late", name="Late", timezone="UTC", target_hour=22)
    resort = resolve_resort(settings, ScheduleConfig(scraping_window_hours=4))

    assert is_in_scraping_window(resort, datetime(2025, 1, 10, 23, tzinfo=timezone.utc))
    assert is_in_scraping_window(resort, datetime(2025, 1, 11, 1, tzinfo=timezone.utc))
    assert not is_in_scraping_window(resort, datetime(2025, 1, 11, 2, tzinfo=timezone.utc))


def test_month_day_parsing_and_leap_clamp():
    assert MonthDay.parse("11-01") == MonthDay(11, 1)
    assert str(MonthDay(2, 29)) == "02-29"
    assert MonthDay(2, 29).in_year(2025) == date(2025, 2, 28)
    assert MonthDay(2, 29).in_year(2024) == date(2024, 2, 29)

    with pytest.raises(ValueError):
        MonthDay.parse("13-01")
    with pytest.raises(ValueError):
        MonthDay.parse("November")


def test_clock_helpers():
    assert parse_clock("08:30") == 510
    assert parse_clock("8:30:00") == 510
    assert parse_clock("") is None
    assert parse_clock("noon") is None
    assert format_clock(965) == "16:05"


def test_naive_now_is_treated_as_utc():
    from zoneinfo import ZoneInfo

    zone = ZoneInfo("America/Denver")
    assert local_date_iso(zone, datetime(2025, 1, 2, 3, 0)) == "2025-01-01"
