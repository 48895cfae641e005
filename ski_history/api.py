"""HTTP read API over resort status and generated trail history."""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .config import AppConfig, UnknownResortError, load_config
from .eligibility import EligibilityEngine, ScrapeDecision
from .extraction import BrowserExtractor, StatusExtractor
from .lifts import poll_lifts
from .localtime import utc_now
from .logging import get_logger, setup_logging
from .models import TrailArtifact
from .runner import run_daily
from .scheduler import build_scheduler
from .snapshots import SnapshotStore

logger = get_logger(__name__)


class DecisionPayload(BaseModel):
    should_scrape: bool
    reason: Optional[str] = None
    label: Optional[str] = None


class ResortStatusPayload(BaseModel):
    key: str
    name: str
    timezone: str
    local_date: str
    local_time: str
    in_season: bool
    in_window: bool
    decisions: Dict[str, DecisionPayload]


class ResortsResponse(BaseModel):
    generated_at: datetime
    resorts: List[ResortStatusPayload]


class TrailSummaryPayload(BaseModel):
    name: str
    slug: str
    area: str
    difficulty: str
    is_groomed_today: bool
    is_open: bool
    grooming_percentage: int
    current_streak: int


class TrailsResponse(BaseModel):
    resort: str
    resort_name: str
    trail_count: int
    last_updated: Optional[str] = None
    trails: List[TrailSummaryPayload]


class DayOfWeekPayload(BaseModel):
    day: str
    percentage: int
    groomed: int
    total: int


class HistoryPayload(BaseModel):
    date: str
    is_open: bool
    is_groomed: bool
    grooming_status: Optional[str] = None
    grooming_type: Optional[str] = None


class TrailDetailResponse(BaseModel):
    trail_name: str
    trail_slug: str
    resort: str
    resort_name: str
    area: str
    difficulty: str
    trail_type: str
    current_date: Optional[str] = None
    is_open: bool
    is_groomed: bool
    days_tracked: int
    days_groomed: int
    grooming_percentage: int
    current_streak: int
    longest_streak: int
    last_groomed: Optional[str] = None
    season_start_date: Optional[str] = None
    day_of_week: List[DayOfWeekPayload]
    history: List[HistoryPayload]
    generated: Optional[datetime] = None


def _decision_to_payload(decision: ScrapeDecision) -> DecisionPayload:
    return DecisionPayload(
        should_scrape=decision.should_scrape,
        reason=decision.reason.value if decision.reason else None,
        label=decision.reason.label if decision.reason else None,
    )


def _artifact_to_payload(artifact: TrailArtifact) -> TrailDetailResponse:
    stats = artifact.stats
    return TrailDetailResponse(
        trail_name=artifact.trail_name,
        trail_slug=artifact.trail_slug,
        resort=artifact.resort,
        resort_name=artifact.resort_name,
        area=artifact.area,
        difficulty=artifact.difficulty,
        trail_type=artifact.trail_type,
        current_date=artifact.current_status.date,
        is_open=artifact.current_status.is_open,
        is_groomed=artifact.current_status.is_groomed,
        days_tracked=stats.days_tracked,
        days_groomed=stats.days_groomed,
        grooming_percentage=stats.grooming_percentage,
        current_streak=stats.current_streak,
        longest_streak=stats.longest_streak,
        last_groomed=stats.last_groomed,
        season_start_date=stats.season_start_date,
        day_of_week=[DayOfWeekPayload(**d.to_dict()) for d in stats.day_of_week],
        history=[
            HistoryPayload(
                date=entry.date,
                is_open=entry.is_open,
                is_groomed=entry.is_groomed,
                grooming_status=entry.grooming_status,
                grooming_type=entry.grooming_type,
            )
            for entry in artifact.history
        ],
        generated=artifact.generated,
    )


def create_app(
    config: Optional[AppConfig] = None,
    *,
    extractor: Optional[StatusExtractor] = None,
    clock=None,
) -> FastAPI:
    config = config or load_config()
    setup_logging(config.logging, force=True)
    snapshots = SnapshotStore(config.storage.data_dir)
    eligibility = EligibilityEngine(snapshots)
    now = clock or utc_now

    job_extractor = extractor or BrowserExtractor()

    async def daily_job() -> None:
        await run_daily(config, job_extractor)

    async def lift_job() -> None:
        await poll_lifts(config, job_extractor)

    scheduler = build_scheduler(daily_job, lift_job, config)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if scheduler and not scheduler.running:
            logger.info("scheduler.start")
            scheduler.start()
        try:
            yield
        finally:
            if scheduler and scheduler.running:
                logger.info("scheduler.stop")
                scheduler.shutdown()

    app = FastAPI(title="Ski History API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _resort_or_404(key: str):
        try:
            return config.resort(key)
        except UnknownResortError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.get("/resorts", response_model=ResortsResponse)
    def get_resorts() -> ResortsResponse:
        current = now()
        payloads = []
        for resort in config.resorts():
            status = eligibility.resort_status(resort, current)
            payloads.append(
                ResortStatusPayload(
                    key=status["key"],
                    name=status["name"],
                    timezone=status["timezone"],
                    local_date=status["local_date"],
                    local_time=status["local_time"],
                    in_season=status["in_season"],
                    in_window=status["in_window"],
                    decisions={kind: _decision_to_payload(d) for kind, d in status["decisions"].items()},
                )
            )
        return ResortsResponse(generated_at=current, resorts=payloads)

    @app.get("/resorts/{key}/trails", response_model=TrailsResponse)
    def get_trails(key: str) -> TrailsResponse:
        resort = _resort_or_404(key)
        index = snapshots.load_trails_index(resort.key)
        if index is None:
            raise HTTPException(status_code=404, detail=f"No trail history for {resort.key}")
        return TrailsResponse(
            resort=index["resort"],
            resort_name=index.get("resortName", resort.name),
            trail_count=index.get("trailCount", len(index.get("trails", []))),
            last_updated=index.get("lastUpdated"),
            trails=[
                TrailSummaryPayload(
                    name=trail["name"],
                    slug=trail["slug"],
                    area=trail["area"],
                    difficulty=trail["difficulty"],
                    is_groomed_today=trail["isGroomedToday"],
                    is_open=trail["isOpen"],
                    grooming_percentage=trail["groomingPercentage"],
                    current_streak=trail["currentStreak"],
                )
                for trail in index.get("trails", [])
            ],
        )

    @app.get("/resorts/{key}/trails/{slug}", response_model=TrailDetailResponse)
    def get_trail(key: str, slug: str) -> TrailDetailResponse:
        resort = _resort_or_404(key)
        artifact = snapshots.load_trail_artifact(resort.key, slug)
        if artifact is None:
            raise HTTPException(status_code=404, detail=f"Unknown trail: {slug}")
        return _artifact_to_payload(artifact)

    app.state.config = config
    app.state.scheduler = scheduler
    return app


app = create_app()
