"""Season and time-of-day policy for a single resort.

Ski seasons usually straddle New Year (e.g. ``11-01`` through ``05-01``). The
season that "today" belongs to is found by pivoting on the start month: from
the start month onward the season began this year, before it the season began
last year. The end date falls in the following year whenever the end month is
earlier than the start month.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Tuple

from .config import EffectiveResortConfig
from .localtime import local_date, local_now


def season_bounds(resort: EffectiveResortConfig, today: date) -> Tuple[date, date]:
    start, end = resort.season_start, resort.season_end
    start_year = today.year if today.month >= start.month else today.year - 1
    end_year = start_year + 1 if end.month < start.month else start_year
    return start.in_year(start_year), end.in_year(end_year)


def season_start_date(resort: EffectiveResortConfig, today: date) -> date:
    return season_bounds(resort, today)[0]


def is_in_season_on(resort: EffectiveResortConfig, today: date) -> bool:
    start, end = season_bounds(resort, today)
    return start <= today < end


def is_in_season(resort: EffectiveResortConfig, now: Optional[datetime] = None) -> bool:
    return is_in_season_on(resort, local_date(resort.zone, now))


def is_in_scraping_window(resort: EffectiveResortConfig, now: Optional[datetime] = None) -> bool:
    """Whether the local hour falls in ``[target_hour, target_hour + window_hours)``.

    The range wraps past midnight. Only used for status reporting; eligibility
    keeps allowing catch-up scrapes after the window closes.
    """
    if resort.window_hours <= 0:
        return False
    hour = local_now(resort.zone, now).hour
    return (hour - resort.target_hour) % 24 < min(resort.window_hours, 24)
