"""Lift operating windows and the high-frequency lift status poll."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from .config import AppConfig, EffectiveResortConfig
from .extraction import StatusExtractor
from .localtime import format_clock, local_now, parse_clock, utc_now
from .logging import get_logger
from .models import LiftItem, LiftRecord, OperatingWindow, TerrainFeed
from .scheduling import is_in_season
from .snapshots import SnapshotStore

logger = get_logger(__name__)


def operating_window(
    lifts: Sequence[LiftItem], zone: ZoneInfo, now: Optional[datetime] = None
) -> OperatingWindow:
    """Resort-wide lift hours: earliest open time to latest close time, inclusive.

    This is the union of the lift schedules, so the resort counts as open
    while any lift could be running.
    """
    if not lifts:
        return OperatingWindow(is_open=False, reason="No lift data available")

    open_times = [m for m in (parse_clock(l.open_time) for l in lifts) if m is not None]
    close_times = [m for m in (parse_clock(l.close_time) for l in lifts) if m is not None]
    if not open_times or not close_times:
        return OperatingWindow(is_open=False, reason="No operating hours available")

    opens, closes = min(open_times), max(close_times)
    local = local_now(zone, now)
    current = local.hour * 60 + local.minute
    is_open = opens <= current <= closes
    current_time = format_clock(current)
    reason = (
        "Within operating hours"
        if is_open
        else f"Outside operating hours ({current_time} not in {format_clock(opens)} - {format_clock(closes)})"
    )
    return OperatingWindow(
        is_open=is_open,
        reason=reason,
        open_time=format_clock(opens),
        close_time=format_clock(closes),
        current_time=current_time,
    )


@dataclass
class LiftPollResult:
    resort_key: str
    status: str
    lifts_recorded: int = 0
    open_lifts: int = 0
    closed_lifts: int = 0
    lifts_with_wait_times: int = 0
    window: Optional[OperatingWindow] = None
    error: Optional[str] = None


class LiftPoller:
    """Appends lift observations for in-season resorts during lift hours.

    Outside the operating window the poll still runs but records nothing, so
    overnight gaps read as "not recorded" rather than "lifts closed".
    """

    def __init__(self, config: AppConfig, extractor: StatusExtractor, snapshots: SnapshotStore) -> None:
        self.config = config
        self.extractor = extractor
        self.snapshots = snapshots

    async def poll_resort(self, resort: EffectiveResortConfig, now: Optional[datetime] = None) -> LiftPollResult:
        log = logger.bind(resort=resort.key)
        if not is_in_season(resort, now):
            log.info("lifts.skipped", reason="out_of_season")
            return LiftPollResult(resort.key, "out_of_season")
        if not resort.terrain_url:
            log.info("lifts.skipped", reason="no_url")
            return LiftPollResult(resort.key, "no_url")

        try:
            payload = await self.extractor.fetch_terrain(resort.terrain_url)
        except Exception as exc:
            log.error("lifts.scrape_error", error=str(exc))
            return LiftPollResult(resort.key, "scrape_error", error=str(exc))

        feed = TerrainFeed.from_payload(payload) if payload else None
        lifts = feed.all_lifts() if feed else _top_level_lifts(payload)
        if not lifts:
            log.warning("lifts.no_data")
            return LiftPollResult(resort.key, "no_data")

        # the clock is read after extraction, which can take a minute or more
        observed = now or utc_now()
        window = operating_window(lifts, resort.zone, observed)
        if not window.is_open:
            log.info("lifts.outside_hours", reason=window.reason)
            return LiftPollResult(resort.key, "outside_hours", window=window)

        local = local_now(resort.zone, observed)
        records = [
            LiftRecord.from_lift(lift, resort=resort.key, timestamp=observed, local_time=local.strftime("%H:%M:%S"))
            for lift in lifts
        ]
        written = self.snapshots.append_lift_records(resort.key, local.date().isoformat(), records)
        result = LiftPollResult(
            resort.key,
            "success",
            lifts_recorded=written,
            open_lifts=sum(1 for r in records if r.status == "Open"),
            closed_lifts=sum(1 for r in records if r.status == "Closed"),
            lifts_with_wait_times=sum(1 for r in records if (r.wait_minutes or 0) > 0),
            window=window,
        )
        log.info(
            "lifts.recorded",
            lifts=written,
            open=result.open_lifts,
            closed=result.closed_lifts,
            with_waits=result.lifts_with_wait_times,
            open_time=window.open_time,
            close_time=window.close_time,
        )
        return result

    async def _guarded(self, resort: EffectiveResortConfig, now: Optional[datetime]) -> LiftPollResult:
        try:
            return await self.poll_resort(resort, now)
        except Exception as exc:
            logger.error("lifts.unexpected_error", resort=resort.key, error=str(exc))
            return LiftPollResult(resort.key, "error", error=str(exc))

    async def poll(
        self, now: Optional[datetime] = None, resorts: Optional[Iterable[EffectiveResortConfig]] = None
    ) -> List[LiftPollResult]:
        candidates = list(resorts) if resorts is not None else self.config.resorts()
        in_season = [r for r in candidates if is_in_season(r, now)]
        batch_size = max(1, self.config.schedule.lift_batch_size)
        logger.info("lifts.poll.start", in_season=len(in_season), total=len(candidates), batch_size=batch_size)

        results: List[LiftPollResult] = []
        for start in range(0, len(in_season), batch_size):
            batch = in_season[start : start + batch_size]
            results.extend(await asyncio.gather(*(self._guarded(r, now) for r in batch)))

        logger.info(
            "lifts.poll.complete",
            recorded=sum(1 for r in results if r.status == "success"),
            snapshots=sum(r.lifts_recorded for r in results),
            skipped={r.resort_key: r.status for r in results if r.status != "success"},
        )
        return results


def _top_level_lifts(payload) -> List[LiftItem]:
    if not isinstance(payload, dict):
        return []
    return [LiftItem.from_payload(l) for l in payload.get("Lifts") or [] if isinstance(l, dict)]


async def poll_lifts(
    config: AppConfig, extractor: StatusExtractor, *, now: Optional[datetime] = None
) -> List[LiftPollResult]:
    return await LiftPoller(config, extractor, SnapshotStore(config.storage.data_dir)).poll(now)
