from pathlib import Path

import pytest

from ski_history.config import (
    AppConfig,
    ConfigError,
    ResortSettings,
    ScheduleConfig,
    UnknownResortError,
    load_config,
)
from ski_history.localtime import MonthDay


def write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "resorts.yaml"
    path.write_text(body)
    return path


def test_defaults_ship_with_resorts():
    config = load_config(env={})

    assert "vail" in config.resort_keys()
    vail = config.resort("vail")
    assert vail.timezone == "America/Denver"
    assert vail.season_start == MonthDay(11, 1)
    assert vail.season_end == MonthDay(5, 1)
    assert vail.target_hour == 7


def test_resort_overrides_and_url_alias(tmp_path: Path):
    path = write_config(
        tmp_path,
        """
resorts:
  - key: hill
    name: Hill
    timezone: America/New_York
    url: https://example.com/terrain
    season_start: "12-15"
    target_hour: 9
""",
    )
    config = load_config(config_path=str(path), env={})

    hill = config.resort("hill")
    assert hill.terrain_url == "https://example.com/terrain"
    assert hill.url_for("terrain") == "https://example.com/terrain"
    assert hill.url_for("snow") is None
    assert hill.season_start == MonthDay(12, 15)
    assert hill.season_end == MonthDay(5, 1)
    assert hill.target_hour == 9


def test_env_overrides_storage_and_target_hour(tmp_path: Path):
    config = load_config(
        env={
            "SKIHISTORY_TARGET_HOUR": "6",
            "SKIHISTORY_DATA_DIR": str(tmp_path / "out"),
            "SKIHISTORY_SCHEDULER_ENABLED": "true",
            "SKIHISTORY_LOG_JSON": "false",
        }
    )

    assert config.schedule.target_hour == 6
    assert config.storage.data_dir == tmp_path / "out"
    assert config.storage.db_path == Path("data/ski-data.db")
    assert config.scheduler.enabled is True
    assert config.logging.json is False
    assert all(resort.target_hour == 6 for resort in config.resorts())


def test_empty_env_mapping_ignores_process_environment(monkeypatch):
    monkeypatch.setenv("SKIHISTORY_TARGET_HOUR", "3")

    assert load_config(env={}).schedule.target_hour == 7
    assert load_config().schedule.target_hour == 3


def test_invalid_target_hour_is_rejected():
    with pytest.raises(ConfigError):
        load_config(env={"SKIHISTORY_TARGET_HOUR": "25"})


def test_unknown_timezone_is_a_config_error():
    with pytest.raises(ConfigError):
        AppConfig(resort_settings=(ResortSettings(key="x", name="X", timezone="Mars/Olympus"),))


def test_duplicate_keys_are_rejected():
    settings = ResortSettings(key="dup", name="Dup")
    with pytest.raises(ConfigError):
        AppConfig(resort_settings=(settings, settings))


def test_select_resolves_targets():
    config = AppConfig(
        resort_settings=(ResortSettings(key="a", name="A"), ResortSettings(key="b", name="B")),
        schedule=ScheduleConfig(),
    )

    assert [r.key for r in config.select(None)] == ["a", "b"]
    assert [r.key for r in config.select("all")] == ["a", "b"]
    assert [r.key for r in config.select("b")] == ["b"]

    with pytest.raises(UnknownResortError) as excinfo:
        config.select("nope")
    assert excinfo.value.valid_keys == ["a", "b"]
    assert "Available resorts: a, b" in str(excinfo.value)
