"""Daily ski resort snapshots, trail grooming history and lift status logs."""

from .config import AppConfig, ConfigError, UnknownResortError, load_config
from .eligibility import EligibilityEngine, SkipReason
from .history import TrailHistoryGenerator
from .lifts import LiftPoller, operating_window
from .runner import DailyRunner, RunSummary
from .snapshots import SnapshotStore
from .storage import TerrainStore

__all__ = [
    "AppConfig",
    "ConfigError",
    "DailyRunner",
    "EligibilityEngine",
    "LiftPoller",
    "load_config",
    "operating_window",
    "RunSummary",
    "SkipReason",
    "SnapshotStore",
    "TerrainStore",
    "TrailHistoryGenerator",
    "UnknownResortError",
]
