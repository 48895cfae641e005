import random
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from ski_history.config import ResortSettings
from ski_history.history import (
    HISTORY_LIMIT,
    TrailHistoryGenerator,
    calculate_streaks,
    compute_trail_artifact,
    compute_trails_index,
    percentage,
    slugify_trail_name,
)
from ski_history.models import TerrainStatusRecord
from ski_history.snapshots import SnapshotStore
from ski_history.storage import TerrainStore

from factories import build_config, terrain_payload, trail


def make_rows(flags, *, newest=date(2025, 1, 10), name="Riva Ridge"):
    """Rows for consecutive days, ``flags`` given most recent first."""
    rows = []
    for offset, groomed in enumerate(flags):
        day = (newest - timedelta(days=offset)).isoformat()
        rows.append(
            TerrainStatusRecord(
                date=day,
                item_name=name,
                status="Open",
                grooming_status="Groomed" if groomed else None,
                grooming_type="Alpine",
                raw_data={"Name": name, "Difficulty": "Expert", "IsOpen": True, "IsGroomed": groomed},
            )
        )
    return rows


def artifact_for(rows, **kwargs):
    return compute_trail_artifact(
        rows, resort_key="vail", resort_name="Vail", trail_name="Riva Ridge", **kwargs
    )


def test_streaks_break_on_ungroomed_day():
    streaks = calculate_streaks(make_rows([True, True, False, True, True]))

    assert streaks.current_streak == 2
    assert streaks.longest_streak == 2
    assert streaks.last_groomed_date == "2025-01-10"


def test_missing_day_breaks_current_streak_only():
    rows = make_rows([True, True, True])
    del rows[1]

    streaks = calculate_streaks(rows)
    assert streaks.current_streak == 1
    assert streaks.longest_streak == 2


def test_longest_streak_counts_groomed_rows_across_date_gap():
    # Jan 10, 9, 7, 6, 5 groomed; no row for Jan 8.
    rows = make_rows([True, True, True, True, True, True])
    del rows[2]
    random.Random(3).shuffle(rows)

    streaks = calculate_streaks(rows)
    assert streaks.current_streak == 2
    assert streaks.longest_streak == 5
    assert streaks.last_groomed_date == "2025-01-10"


def test_longest_streak_resets_on_ungroomed_row_not_on_gap():
    # Newest first: Jan 10 groomed, Jan 9 ungroomed, then groomed Jan 8, 6, 5.
    rows = make_rows([True, False, True, True, True, True])
    del rows[3]

    streaks = calculate_streaks(rows)
    assert streaks.current_streak == 1
    assert streaks.longest_streak == 3


def test_current_streak_zero_when_latest_day_ungroomed():
    streaks = calculate_streaks(make_rows([False, True, True, True]))

    assert streaks.current_streak == 0
    assert streaks.longest_streak == 3
    assert streaks.last_groomed_date == "2025-01-09"


def test_empty_rows_give_zeroed_artifact():
    artifact = artifact_for([])

    assert artifact.stats.days_tracked == 0
    assert artifact.stats.grooming_percentage == 0
    assert artifact.stats.current_streak == 0
    assert artifact.stats.longest_streak == 0
    assert artifact.stats.last_groomed is None
    assert artifact.history == []
    assert artifact.trail_slug == "riva-ridge"
    assert [d.total for d in artifact.stats.day_of_week] == [0] * 7


def test_artifact_is_independent_of_row_order():
    rows = make_rows([True, False, True, True, False, True, True, True, False, True])
    expected = artifact_for(rows)

    shuffled = list(rows)
    for seed in range(5):
        random.Random(seed).shuffle(shuffled)
        assert artifact_for(shuffled) == expected


def test_percentages_and_day_of_week():
    # 2025-01-10 is a Friday.
    artifact = artifact_for(make_rows([True, False, True]))
    stats = artifact.stats

    assert stats.days_tracked == 3
    assert stats.days_groomed == 2
    assert stats.grooming_percentage == 67
    by_day = {d.day: d for d in stats.day_of_week}
    assert [d.day for d in stats.day_of_week] == ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
    assert (by_day["Fri"].groomed, by_day["Fri"].total, by_day["Fri"].percentage) == (1, 1, 100)
    assert (by_day["Thu"].groomed, by_day["Thu"].total, by_day["Thu"].percentage) == (0, 1, 0)
    assert by_day["Mon"].total == 0


def test_percentage_rounds_half_up():
    assert percentage(1, 2) == 50
    assert percentage(1, 8) == 13
    assert percentage(0, 0) == 0


def test_history_keeps_most_recent_ninety_days():
    rows = make_rows([True] * 120)

    artifact = artifact_for(rows)
    assert len(artifact.history) == HISTORY_LIMIT
    assert artifact.history[0].date == "2025-01-10"
    assert artifact.history[-1].date == (date(2025, 1, 10) - timedelta(days=HISTORY_LIMIT - 1)).isoformat()
    assert artifact.stats.days_tracked == 120
    assert artifact.current_status.is_groomed is True
    assert artifact.difficulty == "Expert"


def test_slugify_trail_name():
    assert slugify_trail_name("Riva Ridge") == "riva-ridge"
    assert slugify_trail_name("Lover's Lane (Upper)") == "lovers-lane-upper"
    assert slugify_trail_name("Big  -  Dipper") == "big-dipper"


def test_trails_index_sorts_by_area_then_name():
    generated = datetime(2025, 1, 10, tzinfo=timezone.utc)
    artifacts = [
        compute_trail_artifact([], resort_key="vail", resort_name="Vail", trail_name=name, area=area)
        for area, name in [("Back Bowls", "Sun Down"), ("Blue Sky", "Pete's Express"), ("Back Bowls", "Ébène"),
                           ("Back Bowls", "apres")]
    ]

    index = compute_trails_index("vail", "Vail", artifacts, generated=generated)

    assert [(t.area, t.name) for t in index.trails] == [
        ("Back Bowls", "apres"),
        ("Back Bowls", "Ébène"),
        ("Back Bowls", "Sun Down"),
        ("Blue Sky", "Pete's Express"),
    ]
    assert index.to_dict()["trailCount"] == 4


def test_generator_writes_artifacts_and_index(tmp_path: Path, resort_settings):
    config = build_config(tmp_path, resort_settings)
    resort = config.resort("vail")
    snapshots = SnapshotStore(config.storage.data_dir)
    now = datetime(2025, 1, 10, 20, tzinfo=timezone.utc)

    with TerrainStore(config.storage.db_path) as store:
        resort_id = store.upsert_resort("vail", "Vail", "America/Denver")
        for day, groomed in (("2025-01-08", True), ("2025-01-09", True), ("2025-01-10", False)):
            payload = terrain_payload(trail("Riva Ridge", groomed=groomed), trail("Born Free", groomed=True),
                                      area="Vail Village")
            snapshots.save_snapshot("vail", "terrain", day, payload)
            store.ingest_terrain(resort_id, day, payload)
        # Rows from before the season start are ignored.
        store.ingest_terrain(resort_id, "2024-10-01", terrain_payload(trail("Old Trail")))

        written = TrailHistoryGenerator(store, snapshots).generate([resort], now)

    assert written == 2
    riva = snapshots.load_trail_artifact("vail", "riva-ridge")
    assert riva.area == "Vail Village"
    assert riva.stats.season_start_date == "2024-11-01"
    assert riva.stats.current_streak == 0
    assert riva.stats.longest_streak == 2
    assert riva.current_status.date == "2025-01-10"

    index = snapshots.load_trails_index("vail")
    assert [t["slug"] for t in index["trails"]] == ["born-free", "riva-ridge"]
    assert index["trails"][0]["currentStreak"] == 3
    assert snapshots.load_trail_artifact("vail", "old-trail") is None


def test_generator_without_resort_row_writes_nothing(tmp_path: Path, resort_settings):
    config = build_config(tmp_path, resort_settings)
    snapshots = SnapshotStore(config.storage.data_dir)

    with TerrainStore(config.storage.db_path) as store:
        assert TrailHistoryGenerator(store, snapshots).generate_resort(config.resort("vail")) == 0
    assert snapshots.load_trails_index("vail") is None
