from pathlib import Path

import pytest

from ski_history.config import AppConfig, ResortSettings

from factories import build_config


@pytest.fixture
def resort_settings() -> ResortSettings:
    return ResortSettings(
        key="vail",
        name="Vail",
        timezone="America/Denver",
        terrain_url="https://example.com/vail/terrain",
        snow_report_url="https://example.com/vail/snow",
    )


@pytest.fixture
def app_config(tmp_path: Path, resort_settings: ResortSettings) -> AppConfig:
    return build_config(tmp_path, resort_settings)
