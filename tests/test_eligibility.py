from datetime import datetime, timedelta, timezone
from pathlib import Path

from ski_history.config import ResortSettings, ScheduleConfig, resolve_resort
from ski_history.eligibility import EligibilityEngine, SkipReason
from ski_history.snapshots import SnapshotStore


def make_resort(**overrides):
    settings = ResortSettings(
        key="hill",
        name="Hill",
        timezone="Etc/GMT+7",
        terrain_url="https://example.com/terrain",
        snow_report_url=overrides.pop("snow_report_url", "https://example.com/snow"),
        **overrides,
    )
    return resolve_resort(settings, ScheduleConfig(target_hour=7, scraping_window_hours=3))


def local(hour: int, day: int = 15) -> datetime:
    # Etc/GMT+7 is UTC-7.
    return datetime(2025, 1, day, tzinfo=timezone.utc) + timedelta(hours=hour + 7)


def test_scrape_due_until_snapshot_written(tmp_path: Path):
    snapshots = SnapshotStore(tmp_path)
    engine = EligibilityEngine(snapshots)
    resort = make_resort()
    now = local(9)

    decision = engine.decide(resort, "terrain", now)
    assert decision.should_scrape
    assert decision.local_date == "2025-01-15"

    snapshots.save_snapshot("hill", "terrain", "2025-01-15", {"GroomingAreas": []})

    second = engine.decide(resort, "terrain", now)
    assert not second
    assert second.reason is SkipReason.ALREADY_SCRAPED
    assert engine.should_scrape(resort, "snow", now)


def test_before_target_hour_is_outside_window(tmp_path: Path):
    engine = EligibilityEngine(SnapshotStore(tmp_path))

    decision = engine.decide(make_resort(), "terrain", local(6))
    assert decision.reason is SkipReason.OUTSIDE_WINDOW


def test_catch_up_after_window_closes(tmp_path: Path):
    engine = EligibilityEngine(SnapshotStore(tmp_path))

    assert engine.should_scrape(make_resort(), "terrain", local(22))


def test_already_scraped_uses_local_date(tmp_path: Path):
    snapshots = SnapshotStore(tmp_path)
    engine = EligibilityEngine(snapshots)
    # 2025-01-16 03:00 UTC is still 2025-01-15 20:00 locally.
    now = datetime(2025, 1, 16, 3, 0, tzinfo=timezone.utc)
    snapshots.save_snapshot("hill", "terrain", "2025-01-15", {"GroomingAreas": []})

    decision = engine.decide(make_resort(), "terrain", now)
    assert decision.local_date == "2025-01-15"
    assert decision.reason is SkipReason.ALREADY_SCRAPED


def test_out_of_season_and_missing_url(tmp_path: Path):
    engine = EligibilityEngine(SnapshotStore(tmp_path))
    summer = datetime(2025, 7, 1, 18, 0, tzinfo=timezone.utc)

    assert engine.decide(make_resort(), "terrain", summer).reason is SkipReason.OUT_OF_SEASON
    no_snow = make_resort(snow_report_url=None)
    assert engine.decide(no_snow, "snow", local(9)).reason is SkipReason.NO_URL


def test_resort_status_reports_each_kind(tmp_path: Path):
    engine = EligibilityEngine(SnapshotStore(tmp_path))

    status = engine.resort_status(make_resort(), local(8))
    assert status["in_season"] is True
    assert status["in_window"] is True
    assert status["local_time"] == "08:00"
    assert set(status["decisions"]) == {"terrain", "snow"}
    assert all(d.should_scrape for d in status["decisions"].values())
    assert SkipReason.NO_URL.label == "no URL configured"
