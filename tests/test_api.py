import dataclasses
from datetime import datetime, timezone

from fastapi.testclient import TestClient

from ski_history.api import create_app
from ski_history.config import SchedulerConfig
from ski_history.history import TrailHistoryGenerator
from ski_history.snapshots import SnapshotStore
from ski_history.storage import TerrainStore

from factories import terrain_payload, trail

NOW = datetime(2025, 1, 10, 16, tzinfo=timezone.utc)


def make_client(config):
    return TestClient(create_app(config, clock=lambda: NOW))


def seed_history(config):
    snapshots = SnapshotStore(config.storage.data_dir)
    with TerrainStore(config.storage.db_path) as store:
        resort_id = store.upsert_resort("vail", "Vail", "America/Denver")
        store.ingest_terrain(resort_id, "2025-01-10", terrain_payload(trail("Riva Ridge", groomed=True)))
        TrailHistoryGenerator(store, snapshots).generate([config.resort("vail")], NOW)


def test_resorts_reports_status_per_kind(app_config):
    response = make_client(app_config).get("/resorts")

    assert response.status_code == 200
    body = response.json()
    vail = body["resorts"][0]
    assert vail["key"] == "vail"
    assert vail["local_date"] == "2025-01-10"
    assert vail["local_time"] == "09:00"
    assert vail["in_season"] is True
    assert vail["in_window"] is True
    assert vail["decisions"]["terrain"] == {"should_scrape": True, "reason": None, "label": None}


def test_resorts_reports_skip_reason(app_config):
    SnapshotStore(app_config.storage.data_dir).save_snapshot("vail", "snow", "2025-01-10", {})

    decisions = make_client(app_config).get("/resorts").json()["resorts"][0]["decisions"]

    assert decisions["snow"] == {"should_scrape": False, "reason": "already_scraped", "label": "already scraped"}


def test_trails_endpoints(app_config):
    seed_history(app_config)
    client = make_client(app_config)

    index = client.get("/resorts/vail/trails")
    assert index.status_code == 200
    assert index.json()["trail_count"] == 1
    assert index.json()["trails"][0]["slug"] == "riva-ridge"
    assert index.json()["trails"][0]["is_groomed_today"] is True

    detail = client.get("/resorts/vail/trails/riva-ridge")
    assert detail.status_code == 200
    assert detail.json()["current_streak"] == 1
    assert detail.json()["history"][0]["date"] == "2025-01-10"
    assert len(detail.json()["day_of_week"]) == 7


def test_unknown_resort_and_trail_are_404(app_config):
    client = make_client(app_config)

    assert client.get("/resorts/nowhere/trails").status_code == 404
    assert client.get("/resorts/vail/trails").status_code == 404
    assert client.get("/resorts/vail/trails/missing").status_code == 404


def test_scheduler_only_built_when_enabled(app_config):
    assert create_app(app_config).state.scheduler is None


def test_scheduler_runs_for_the_app_lifetime(app_config):
    config = dataclasses.replace(app_config, scheduler=SchedulerConfig(enabled=True))
    app = create_app(config, clock=lambda: NOW)
    scheduler = app.state.scheduler

    with TestClient(app) as client:
        assert scheduler.running
        assert {job.id for job in scheduler.get_jobs()} == {"daily-scrape", "lift-poll"}
        assert client.get("/resorts").status_code == 200

    assert not scheduler.running
