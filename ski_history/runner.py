"""The daily scrape pass: decide, extract, snapshot and ingest each resort."""
from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from .config import AppConfig, EffectiveResortConfig
from .eligibility import EligibilityEngine, ScrapeDecision, SkipReason
from .extraction import StatusExtractor
from .history import TrailHistoryGenerator
from .localtime import utc_now
from .logging import get_logger
from .models import DATA_KINDS
from .normalization import DEFAULT_CLEANER, SnowReportCleaner
from .snapshots import SnapshotResult, SnapshotStore
from .storage import TerrainStore

logger = get_logger(__name__)


@contextmanager
def open_store(config: AppConfig) -> Iterator[TerrainStore]:
    store = TerrainStore(config.storage.db_path)
    try:
        yield store
    finally:
        store.close()


@dataclass
class RunSummary:
    successes: Dict[str, int] = field(default_factory=lambda: {kind: 0 for kind in DATA_KINDS})
    skips: Dict[SkipReason, int] = field(default_factory=lambda: {reason: 0 for reason in SkipReason})
    failures: int = 0
    results: List[SnapshotResult] = field(default_factory=list)
    trails_generated: int = 0

    def skip(self, reason: SkipReason) -> None:
        self.skips[reason] += 1

    @property
    def total_successes(self) -> int:
        return sum(self.successes.values())

    def as_log_fields(self) -> Dict[str, object]:
        return {
            "terrain": self.successes["terrain"],
            "snow": self.successes["snow"],
            "failures": self.failures,
            "trails": self.trails_generated,
            **{reason.value: count for reason, count in self.skips.items() if count},
        }


class DailyRunner:
    """One pass of the daily scrape over every configured resort.

    Each resort and data kind is decided, extracted, written as a dated
    snapshot and ingested. A failure for one resort is logged and counted; the
    pass carries on with the next one.
    """

    def __init__(
        self,
        config: AppConfig,
        extractor: StatusExtractor,
        snapshots: SnapshotStore,
        store: TerrainStore,
        cleaner: SnowReportCleaner = DEFAULT_CLEANER,
    ) -> None:
        self.config = config
        self.extractor = extractor
        self.snapshots = snapshots
        self.store = store
        self.cleaner = cleaner
        self.eligibility = EligibilityEngine(snapshots)

    async def _extract(self, resort: EffectiveResortConfig, decision: ScrapeDecision, now: datetime):
        url = resort.url_for(decision.kind)
        if decision.kind == "terrain":
            return await self.extractor.fetch_terrain(url)
        raw = await self.extractor.fetch_snow(url)
        return self.cleaner.clean(resort.key, resort.name, raw, date=decision.local_date, timestamp=now)

    def _persist(self, resort: EffectiveResortConfig, decision: ScrapeDecision, payload: dict) -> int:
        self.snapshots.save_snapshot(resort.key, decision.kind, decision.local_date, payload)
        resort_id = self.store.upsert_resort(resort.key, resort.name, resort.timezone)
        if decision.kind == "terrain":
            return self.store.ingest_terrain(resort_id, decision.local_date, payload)
        return self.store.ingest_snow(resort_id, decision.local_date, payload)

    async def run_resort(
        self, resort: EffectiveResortConfig, summary: RunSummary, now: Optional[datetime] = None
    ) -> None:
        for kind in DATA_KINDS:
            decision = self.eligibility.decide(resort, kind, now)
            log = logger.bind(resort=resort.key, kind=kind, date=decision.local_date)
            if not decision:
                log.info("scrape.skipped", reason=decision.reason.value)
                summary.skip(decision.reason)
                continue

            trace_id = uuid.uuid4().hex
            log = log.bind(trace_id=trace_id)
            log.info("scrape.start")
            try:
                payload = await self._extract(resort, decision, now or utc_now())
            except Exception as exc:
                log.error("scrape.error", error=str(exc))
                summary.skip(SkipReason.EXTRACTION_ERROR)
                continue
            if not payload:
                log.warning("scrape.no_data")
                summary.skip(SkipReason.NO_DATA)
                continue

            try:
                rows = self._persist(resort, decision, payload)
            except (OSError, sqlite3.Error) as exc:
                log.error("scrape.persist_error", error=str(exc))
                summary.failures += 1
                continue

            summary.successes[kind] += 1
            summary.results.append(SnapshotResult(resort.key, kind, decision.local_date, payload))
            log.info("scrape.saved", rows=rows)

    async def run(self, now: Optional[datetime] = None, only: Optional[str] = None) -> RunSummary:
        resorts = self.config.select(only)
        summary = RunSummary()
        logger.info("run.start", resorts=len(resorts))

        for resort in resorts:
            await self.run_resort(resort, summary, now)

        names = {resort.key: resort.name for resort in self.config.resorts()}
        if summary.results:
            try:
                self.snapshots.generate_aggregate_latest(summary.results, names)
                self.snapshots.generate_index(names, now=now)
            except OSError as exc:
                logger.error("snapshot.aggregate_error", error=str(exc))
                summary.failures += 1

        refreshed = {r.resort_key for r in summary.results if r.kind == "terrain"}
        if refreshed:
            generator = TrailHistoryGenerator(self.store, self.snapshots)
            for resort in resorts:
                if resort.key not in refreshed:
                    continue
                try:
                    summary.trails_generated += generator.generate_resort(resort, now)
                except (OSError, sqlite3.Error) as exc:
                    logger.error("trails.generate.error", resort=resort.key, error=str(exc))
                    summary.failures += 1

        logger.info("run.complete", **summary.as_log_fields())
        return summary


async def run_daily(
    config: AppConfig, extractor: StatusExtractor, *, now: Optional[datetime] = None, only: Optional[str] = None
) -> RunSummary:
    """Open the store, run one daily pass, and release the store."""
    snapshots = SnapshotStore(config.storage.data_dir)
    with open_store(config) as store:
        return await DailyRunner(config, extractor, snapshots, store).run(now, only)
