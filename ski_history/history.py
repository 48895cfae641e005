"""Per-trail grooming history built from ``terrain_status`` rows.

Trail artifacts are a materialized view: every pass recomputes them from the
relational rows, so they can be deleted and regenerated at any time.
"""
from __future__ import annotations

import math
import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import EffectiveResortConfig
from .localtime import local_date
from .logging import get_logger
from .models import (
    CurrentStatus,
    DayOfWeekStat,
    HistoryEntry,
    TerrainFeed,
    TerrainStatusRecord,
    TrailArtifact,
    TrailItem,
    TrailsIndex,
    TrailStats,
    TrailSummary,
)
from .scheduling import season_start_date
from .snapshots import SnapshotStore
from .storage import TerrainStore

logger = get_logger(__name__)

HISTORY_LIMIT = 90
DAYS_OF_WEEK = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def slugify_trail_name(name: str) -> str:
    slug = name.lower()
    slug = re.sub(r"[^\w\s-]", "", slug, flags=re.ASCII)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"--+", "-", slug)
    return slug.strip()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_half_up(100 * part / whole)


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        return None


def _chronological(rows: Iterable[TerrainStatusRecord]) -> List[TerrainStatusRecord]:
    # Ties on date are broken on the row content so input order never matters.
    return sorted(
        rows, key=lambda r: (r.date, r.grooming_status or "", r.status or "", r.grooming_type or "")
    )


def _follows(previous: TerrainStatusRecord, current: TerrainStatusRecord) -> bool:
    before, after = _parse_date(previous.date), _parse_date(current.date)
    if before is None or after is None:
        return False
    return after - before == timedelta(days=1)


@dataclass(frozen=True)
class StreakStats:
    current_streak: int = 0
    longest_streak: int = 0
    last_groomed_date: Optional[str] = None


def calculate_streaks(rows: Sequence[TerrainStatusRecord]) -> StreakStats:
    """Grooming streaks over a trail's rows, in any order.

    The current streak counts back from the most recent row, and a calendar
    day with no row ends it just like an ungroomed day. The longest streak
    scans forward in date order over the rows themselves, so only an
    ungroomed row resets it.
    """
    if not rows:
        return StreakStats()

    ordered = _chronological(rows)
    newest_first = list(reversed(ordered))

    last_groomed = next((r.date for r in newest_first if r.is_groomed), None)

    current = 0
    previous: Optional[TerrainStatusRecord] = None
    for record in newest_first:
        if not record.is_groomed:
            break
        if previous is not None and not _follows(record, previous):
            break
        current += 1
        previous = record

    longest = 0
    run = 0
    for record in ordered:
        run = run + 1 if record.is_groomed else 0
        longest = max(longest, run)

    return StreakStats(current_streak=current, longest_streak=longest, last_groomed_date=last_groomed)


def calculate_day_of_week_stats(rows: Iterable[TerrainStatusRecord]) -> List[DayOfWeekStat]:
    totals = [0] * 7
    groomed = [0] * 7
    for record in rows:
        day = _parse_date(record.date)
        if day is None:
            continue
        # date.weekday() is Monday=0; the published order starts on Sunday.
        index = (day.weekday() + 1) % 7
        totals[index] += 1
        if record.is_groomed:
            groomed[index] += 1
    return [
        DayOfWeekStat(day=name, percentage=percentage(groomed[i], totals[i]), groomed=groomed[i], total=totals[i])
        for i, name in enumerate(DAYS_OF_WEEK)
    ]


def compute_trail_artifact(
    rows: Sequence[TerrainStatusRecord],
    *,
    resort_key: str,
    resort_name: str,
    trail_name: str,
    season_start: Optional[str] = None,
    area: Optional[str] = None,
    generated: Optional[datetime] = None,
) -> TrailArtifact:
    """Roll a trail's rows up into its published artifact.

    The result depends only on the row set, except for ``generated``.
    """
    newest_first = list(reversed(_chronological(rows)))
    latest = newest_first[0] if newest_first else None
    item = TrailItem.from_payload(latest.raw_data if latest else {})

    days_tracked = len(newest_first)
    days_groomed = sum(1 for r in newest_first if r.is_groomed)
    streaks = calculate_streaks(newest_first)

    stats = TrailStats(
        season_start_date=season_start,
        days_tracked=days_tracked,
        days_groomed=days_groomed,
        grooming_percentage=percentage(days_groomed, days_tracked),
        current_streak=streaks.current_streak,
        longest_streak=streaks.longest_streak,
        last_groomed=streaks.last_groomed_date,
        day_of_week=calculate_day_of_week_stats(newest_first),
    )

    history = [
        HistoryEntry(
            date=r.date,
            is_open=r.is_open,
            is_groomed=r.is_groomed,
            grooming_status=r.grooming_status or None,
            grooming_type=r.grooming_type or None,
        )
        for r in newest_first[:HISTORY_LIMIT]
    ]

    return TrailArtifact(
        trail_name=trail_name,
        trail_slug=slugify_trail_name(trail_name),
        resort=resort_key,
        resort_name=resort_name,
        area=area or "Unknown",
        difficulty=item.difficulty or "Unknown",
        trail_type=item.trail_type or "Skiing",
        current_status=CurrentStatus(
            date=latest.date if latest else None,
            is_open=item.is_open,
            is_groomed=item.is_groomed,
            grooming_status=latest.grooming_status if latest else None,
            status=latest.status if latest else None,
        ),
        stats=stats,
        history=history,
        generated=generated or datetime.now(timezone.utc),
    )


def collation_key(text: str) -> Tuple[str, str]:
    """Sort key that ignores case and accents, falling back to the raw text."""
    decomposed = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return folded, text


def compute_trails_index(
    resort_key: str,
    resort_name: str,
    artifacts: Iterable[TrailArtifact],
    *,
    generated: Optional[datetime] = None,
) -> TrailsIndex:
    summaries = [TrailSummary.from_artifact(artifact) for artifact in artifacts]
    summaries.sort(key=lambda s: (collation_key(s.area), collation_key(s.name)))
    return TrailsIndex(
        resort=resort_key,
        resort_name=resort_name,
        trails=summaries,
        last_updated=generated or datetime.now(timezone.utc),
    )


class TrailHistoryGenerator:
    """Writes trail artifacts and the trails index for configured resorts."""

    def __init__(self, store: TerrainStore, snapshots: SnapshotStore) -> None:
        self.store = store
        self.snapshots = snapshots

    def _area_lookup(self, resort_key: str, snapshot_date: Optional[str]) -> Optional[TerrainFeed]:
        if not snapshot_date:
            return None
        try:
            payload = self.snapshots.load_snapshot(resort_key, "terrain", snapshot_date)
        except ValueError as exc:
            logger.warning("trails.area_lookup_failed", resort=resort_key, date=snapshot_date, error=str(exc))
            return None
        return TerrainFeed.from_payload(payload)

    def generate_resort(self, resort: EffectiveResortConfig, now: Optional[datetime] = None) -> int:
        """Regenerate every trail artifact for one resort. Returns the trail count."""
        log = logger.bind(resort=resort.key)
        resort_id = self.store.resort_id(resort.key)
        if resort_id is None:
            log.warning("trails.no_resort_data")
            return 0

        season_start = season_start_date(resort, local_date(resort.zone, now)).isoformat()
        trail_names = self.store.trail_names(resort_id, season_start)
        log.info("trails.generate.start", season_start=season_start, trails=len(trail_names))
        if not trail_names:
            return 0

        generated = now or datetime.now(timezone.utc)
        feeds: Dict[str, Optional[TerrainFeed]] = {}
        written = 0
        for trail_name in trail_names:
            rows = self.store.trail_rows(resort_id, trail_name, season_start)
            latest_date = max((r.date for r in rows), default=None)
            if latest_date not in feeds:
                feeds[latest_date] = self._area_lookup(resort.key, latest_date)
            feed = feeds[latest_date]
            artifact = compute_trail_artifact(
                rows,
                resort_key=resort.key,
                resort_name=resort.name,
                trail_name=trail_name,
                season_start=season_start,
                area=feed.area_for_trail(trail_name) if feed else None,
                generated=generated,
            )
            self.snapshots.write_trail_artifact(resort.key, artifact)
            written += 1
            if written % 10 == 0:
                log.debug("trails.generate.progress", done=written, total=len(trail_names))

        self.write_index(resort, generated=generated)
        log.info("trails.generate.complete", trails=written)
        return written

    def write_index(self, resort: EffectiveResortConfig, *, generated: Optional[datetime] = None) -> TrailsIndex:
        index = compute_trails_index(
            resort.key, resort.name, self.snapshots.load_trail_artifacts(resort.key), generated=generated
        )
        self.snapshots.write_trails_index(resort.key, index)
        return index

    def generate(self, resorts: Iterable[EffectiveResortConfig], now: Optional[datetime] = None) -> int:
        return sum(self.generate_resort(resort, now) for resort in resorts)
