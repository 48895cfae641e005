"""In-process APScheduler jobs for the daily scrape and the lift poll."""
from __future__ import annotations

from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import AppConfig
from .logging import get_logger

logger = get_logger(__name__)

Job = Callable[[], Awaitable[object]]


def build_scheduler(daily_job: Job, lift_job: Optional[Job], config: AppConfig) -> Optional[AsyncIOScheduler]:
    if not config.scheduler.enabled:
        logger.info("scheduler.disabled")
        return None

    schedule = config.schedule
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        daily_job,
        trigger=IntervalTrigger(hours=schedule.check_interval_hours),
        id="daily-scrape",
        max_instances=1,
        coalesce=True,
    )
    if lift_job is not None:
        scheduler.add_job(
            lift_job,
            trigger=IntervalTrigger(minutes=schedule.lift_poll_minutes),
            id="lift-poll",
            max_instances=1,
            coalesce=True,
        )
    logger.info(
        "scheduler.configured",
        check_interval_hours=schedule.check_interval_hours,
        lift_poll_minutes=schedule.lift_poll_minutes if lift_job is not None else None,
    )
    return scheduler
