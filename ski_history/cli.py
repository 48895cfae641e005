"""Command-line entry point: ``python -m ski_history <command>``."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
from typing import List, Optional

from .config import AppConfig, ConfigError, SchedulerConfig, UnknownResortError, load_config
from .extraction import BrowserExtractor
from .history import TrailHistoryGenerator
from .lifts import poll_lifts
from .logging import get_logger, setup_logging
from .runner import open_store, run_daily
from .scheduler import build_scheduler
from .snapshots import SnapshotStore
from .storage import import_history

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ski_history",
        description="Collect daily resort snapshots and build trail grooming history.",
    )
    parser.add_argument("--config", type=str, help="Path to a YAML config overlaying the defaults")
    parser.add_argument(
        "--no-headless",
        action="store_true",
        help="Run the browser with a visible UI",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    scrape = commands.add_parser("scrape", help="Run the daily terrain and snow scrape")
    scrape.add_argument("resort", nargs="?", default="all", help="Resort key, or 'all' (default)")

    commands.add_parser("lifts", help="Record lift status for in-season resorts within lift hours")
    commands.add_parser("import", help="Re-ingest every snapshot on disk into the database")

    trails = commands.add_parser("trails", help="Regenerate trail history artifacts")
    trails.add_argument("resort", nargs="?", default="all", help="Resort key, or 'all' (default)")

    commands.add_parser("schedule", help="Run the daily scrape and lift poll on an in-process schedule")
    return parser


def _scrape(config: AppConfig, args: argparse.Namespace) -> int:
    config.select(args.resort)
    extractor = BrowserExtractor(headless=not args.no_headless)
    summary = asyncio.run(run_daily(config, extractor, only=args.resort))
    print(
        f"Scraped {summary.successes['terrain']} terrain and {summary.successes['snow']} snow snapshots"
        f" ({summary.failures} failures)"
    )
    for reason, count in summary.skips.items():
        if count:
            print(f"  skipped {count}: {reason.label}")
    return 0


def _lifts(config: AppConfig, args: argparse.Namespace) -> int:
    extractor = BrowserExtractor(headless=not args.no_headless)
    results = asyncio.run(poll_lifts(config, extractor))
    for result in results:
        print(f"{result.resort_key}: {result.status} ({result.lifts_recorded} lifts)")
    return 0


def _import(config: AppConfig, args: argparse.Namespace) -> int:
    snapshots = SnapshotStore(config.storage.data_dir)
    with open_store(config) as store:
        totals = import_history(store, snapshots, config.resorts())
    for key, counts in totals.items():
        print(f"{key}: {counts['terrain']} terrain rows, {counts['snow']} snow rows")
    return 0


def _trails(config: AppConfig, args: argparse.Namespace) -> int:
    resorts = config.select(args.resort)
    snapshots = SnapshotStore(config.storage.data_dir)
    with open_store(config) as store:
        total = TrailHistoryGenerator(store, snapshots).generate(resorts)
    print(f"Generated {total} trail artifacts for {len(resorts)} resort(s)")
    return 0


async def _run_schedule(config: AppConfig, headless: bool) -> None:
    extractor = BrowserExtractor(headless=headless)

    async def daily_job() -> None:
        await run_daily(config, extractor)

    async def lift_job() -> None:
        await poll_lifts(config, extractor)

    scheduler = build_scheduler(daily_job, lift_job, config)
    scheduler.start()
    logger.info("scheduler.start")
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()


def _schedule(config: AppConfig, args: argparse.Namespace) -> int:
    config = dataclasses.replace(config, scheduler=SchedulerConfig(enabled=True))
    try:
        asyncio.run(_run_schedule(config, headless=not args.no_headless))
    except KeyboardInterrupt:
        logger.info("scheduler.stop")
    return 0


COMMANDS = {
    "scrape": _scrape,
    "lifts": _lifts,
    "import": _import,
    "trails": _trails,
    "schedule": _schedule,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        config = load_config(config_path=args.config)
        setup_logging(config.logging, force=True)
        return COMMANDS[args.command](config, args)
    except UnknownResortError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
