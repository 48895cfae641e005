"""Time-zone and calendar helpers shared by the scheduling and lift code.

Everything here is a pure function of ``(timestamp, zone)``. A naive ``now``
is interpreted as UTC so callers can pass ``datetime.utcnow()``-style values
without shifting the resort's local day.
"""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_MONTH_DAY = re.compile(r"^\s*(\d{1,2})-(\d{1,2})\s*$")
_CLOCK = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*$")


def resolve_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone: {name!r}") from exc


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now(zone: ZoneInfo, now: Optional[datetime] = None) -> datetime:
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(zone)


def local_date(zone: ZoneInfo, now: Optional[datetime] = None) -> date:
    return local_now(zone, now).date()


def local_date_iso(zone: ZoneInfo, now: Optional[datetime] = None) -> str:
    return local_date(zone, now).isoformat()


@dataclass(frozen=True, order=True)
class MonthDay:
    """A calendar day without a year, written ``MM-DD`` in configuration."""

    month: int
    day: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month out of range in {self}")
        # 2000 is a leap year, so Feb 29 is accepted here and clamped in in_year().
        if not 1 <= self.day <= calendar.monthrange(2000, self.month)[1]:
            raise ValueError(f"Day out of range in {self}")

    @classmethod
    def parse(cls, value: str) -> "MonthDay":
        match = _MONTH_DAY.match(str(value))
        if not match:
            raise ValueError(f"Expected a MM-DD date, got {value!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    def in_year(self, year: int) -> date:
        last_day = calendar.monthrange(year, self.month)[1]
        return date(year, self.month, min(self.day, last_day))

    def __str__(self) -> str:
        return f"{self.month:02d}-{self.day:02d}"


def parse_clock(value: Optional[str]) -> Optional[int]:
    """Minutes since midnight for an ``HH:mm`` string, or None if it can't be read."""
    if not value:
        return None
    match = _CLOCK.match(str(value))
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 24 or minutes > 59:
        return None
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
