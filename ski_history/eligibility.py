"""Whether a resort is due for a terrain or snow scrape right now."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from .config import EffectiveResortConfig
from .localtime import local_now
from .models import DATA_KINDS
from .scheduling import is_in_scraping_window, is_in_season_on
from .snapshots import SnapshotStore


class SkipReason(str, Enum):
    OUT_OF_SEASON = "out_of_season"
    OUTSIDE_WINDOW = "outside_window"
    ALREADY_SCRAPED = "already_scraped"
    NO_URL = "no_url"
    EXTRACTION_ERROR = "extraction_error"
    NO_DATA = "no_data"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    SkipReason.OUT_OF_SEASON: "out of season",
    SkipReason.OUTSIDE_WINDOW: "outside window",
    SkipReason.ALREADY_SCRAPED: "already scraped",
    SkipReason.NO_URL: "no URL configured",
    SkipReason.EXTRACTION_ERROR: "extraction error",
    SkipReason.NO_DATA: "no data returned",
}


@dataclass(frozen=True)
class ScrapeDecision:
    resort_key: str
    kind: str
    local_date: str
    should_scrape: bool
    reason: Optional[SkipReason] = None

    def __bool__(self) -> bool:
        return self.should_scrape


class EligibilityEngine:
    """Decides whether a resort's terrain or snow data should be scraped now.

    A scrape is due when the resort is in season, has a URL for the data kind,
    has no snapshot for its local date yet, and the local hour has reached the
    target hour. There is no upper bound on the hour: a missed
    window keeps the scrape due until a snapshot exists or the local day ends.
    """

    def __init__(self, snapshots: SnapshotStore) -> None:
        self.snapshots = snapshots

    def decide(self, resort: EffectiveResortConfig, kind: str, now: Optional[datetime] = None) -> ScrapeDecision:
        if kind not in DATA_KINDS:
            raise ValueError(f"Unknown data kind: {kind}")
        local = local_now(resort.zone, now)
        today = local.date().isoformat()

        def skip(reason: SkipReason) -> ScrapeDecision:
            return ScrapeDecision(resort.key, kind, today, False, reason)

        if not is_in_season_on(resort, local.date()):
            return skip(SkipReason.OUT_OF_SEASON)
        if not resort.url_for(kind):
            return skip(SkipReason.NO_URL)
        if self.snapshots.has_snapshot(resort.key, kind, today):
            return skip(SkipReason.ALREADY_SCRAPED)
        if local.hour < resort.target_hour:
            return skip(SkipReason.OUTSIDE_WINDOW)
        return ScrapeDecision(resort.key, kind, today, True)

    def should_scrape(self, resort: EffectiveResortConfig, kind: str, now: Optional[datetime] = None) -> bool:
        return self.decide(resort, kind, now).should_scrape

    def resort_status(self, resort: EffectiveResortConfig, now: Optional[datetime] = None) -> Dict[str, object]:
        local = local_now(resort.zone, now)
        decisions = {kind: self.decide(resort, kind, now) for kind in DATA_KINDS}
        return {
            "key": resort.key,
            "name": resort.name,
            "timezone": resort.timezone,
            "local_date": local.date().isoformat(),
            "local_time": local.strftime("%H:%M"),
            "in_season": is_in_season_on(resort, local.date()),
            "in_window": is_in_scraping_window(resort, now),
            "decisions": decisions,
        }
