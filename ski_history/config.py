"""YAML configuration with environment overrides, resolved per resort."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

import yaml
from dotenv import load_dotenv

from .localtime import MonthDay, resolve_zone

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config" / "defaults.yaml"
load_dotenv()

ENV_PREFIX = "SKIHISTORY_"


class ConfigError(ValueError):
    """Raised when the configuration cannot be resolved into a usable shape."""


class UnknownResortError(KeyError):
    """Raised when a single resort is requested by a key that is not configured."""

    def __init__(self, key: str, valid_keys: Iterable[str]) -> None:
        self.key = key
        self.valid_keys = sorted(valid_keys)
        super().__init__(key)

    def __str__(self) -> str:
        return f"Unknown resort: {self.key}. Available resorts: {', '.join(self.valid_keys)}"


def _bool_from_env(value: str | None) -> Optional[bool]:
    if value is None:
        return None
    value = value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return None


def _merge_dicts(base: Dict, overrides: Mapping) -> Dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), Mapping):
            merged[key] = _merge_dicts(base[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> Dict:
    if not path.exists():
        return {}
    return yaml.safe_load(path.read_text()) or {}


def _validate_hour(value: int, label: str) -> int:
    try:
        hour = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{label} must be an integer hour, got {value!r}") from exc
    if not 0 <= hour <= 23:
        raise ConfigError(f"{label} must be between 0 and 23, got {hour}")
    return hour


@dataclass(frozen=True)
class ScheduleConfig:
    default_season_start: str = "11-01"
    default_season_end: str = "05-01"
    target_hour: int = 7
    scraping_window_hours: int = 3
    check_interval_hours: int = 1
    lift_poll_minutes: int = 5
    lift_batch_size: int = 5


@dataclass(frozen=True)
class StorageConfig:
    data_dir: Path = Path("data")
    db_path: Path = Path("data/ski-data.db")


@dataclass(frozen=True)
class SchedulerConfig:
    enabled: bool = False


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    json: bool = True


@dataclass(frozen=True)
class ResortSettings:
    key: str
    name: str
    timezone: str = "America/Denver"
    terrain_url: Optional[str] = None
    snow_report_url: Optional[str] = None
    season_start: Optional[str] = None
    season_end: Optional[str] = None
    target_hour: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping) -> "ResortSettings":
        if "key" not in data or "name" not in data:
            raise ConfigError(f"resort entries need a key and a name: {dict(data)!r}")
        return cls(
            key=str(data["key"]),
            name=str(data["name"]),
            timezone=data.get("timezone") or "America/Denver",
            # `url` is the older spelling of the terrain page
            terrain_url=data.get("terrain_url") or data.get("url"),
            snow_report_url=data.get("snow_report_url"),
            season_start=data.get("season_start"),
            season_end=data.get("season_end"),
            target_hour=data.get("target_hour"),
        )


@dataclass(frozen=True)
class EffectiveResortConfig:
    """A resort with every schedule default already applied."""

    key: str
    name: str
    timezone: str
    zone: ZoneInfo
    season_start: MonthDay
    season_end: MonthDay
    target_hour: int
    window_hours: int
    terrain_url: Optional[str] = None
    snow_report_url: Optional[str] = None

    def url_for(self, kind: str) -> Optional[str]:
        if kind == "terrain":
            return self.terrain_url
        if kind == "snow":
            return self.snow_report_url
        raise ValueError(f"Unknown data kind: {kind}")


def resolve_resort(settings: ResortSettings, schedule: ScheduleConfig) -> EffectiveResortConfig:
    try:
        zone = resolve_zone(settings.timezone)
    except ValueError as exc:
        raise ConfigError(f"{settings.key}: {exc}") from exc
    try:
        season_start = MonthDay.parse(settings.season_start or schedule.default_season_start)
        season_end = MonthDay.parse(settings.season_end or schedule.default_season_end)
    except ValueError as exc:
        raise ConfigError(f"{settings.key}: {exc}") from exc

    target_hour = schedule.target_hour if settings.target_hour is None else settings.target_hour
    return EffectiveResortConfig(
        key=settings.key,
        name=settings.name,
        timezone=settings.timezone,
        zone=zone,
        season_start=season_start,
        season_end=season_end,
        target_hour=_validate_hour(target_hour, f"{settings.key}.target_hour"),
        window_hours=int(schedule.scraping_window_hours),
        terrain_url=settings.terrain_url or None,
        snow_report_url=settings.snow_report_url or None,
    )


@dataclass(frozen=True)
class AppConfig:
    resort_settings: Tuple[ResortSettings, ...] = ()
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    _resolved: Tuple[EffectiveResortConfig, ...] = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        seen = set()
        resolved: List[EffectiveResortConfig] = []
        for settings in self.resort_settings:
            if settings.key in seen:
                raise ConfigError(f"Duplicate resort key: {settings.key}")
            seen.add(settings.key)
            resolved.append(resolve_resort(settings, self.schedule))
        object.__setattr__(self, "_resolved", tuple(resolved))

    def resorts(self) -> List[EffectiveResortConfig]:
        return list(self._resolved)

    def resort_keys(self) -> List[str]:
        return [resort.key for resort in self._resolved]

    def resort(self, key: str) -> EffectiveResortConfig:
        for resort in self._resolved:
            if resort.key == key:
                return resort
        raise UnknownResortError(key, self.resort_keys())

    def select(self, target: Optional[str]) -> List[EffectiveResortConfig]:
        """Resorts for a command-line target; ``None`` or ``"all"`` means every resort."""
        if target is None or target == "all":
            return self.resorts()
        return [self.resort(target)]


def load_config(*, config_path: str | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    env = dict(os.environ if env is None else env)
    data = _load_yaml(_DEFAULT_CONFIG_PATH)

    explicit_path = config_path or env.get(f"{ENV_PREFIX}CONFIG_PATH")
    if explicit_path:
        data = _merge_dicts(data, _load_yaml(Path(explicit_path)))

    schedule_data = dict(data.get("schedule") or {})
    target_override = env.get(f"{ENV_PREFIX}TARGET_HOUR")
    if target_override:
        schedule_data["target_hour"] = _validate_hour(target_override, f"{ENV_PREFIX}TARGET_HOUR")

    storage_data = dict(data.get("storage") or {})
    data_dir_override = env.get(f"{ENV_PREFIX}DATA_DIR")
    if data_dir_override:
        storage_data["data_dir"] = data_dir_override
    db_override = env.get(f"{ENV_PREFIX}DB_PATH")
    if db_override:
        storage_data["db_path"] = db_override
    storage = StorageConfig(
        data_dir=Path(storage_data.get("data_dir", "data")),
        db_path=Path(
            storage_data.get("db_path") or Path(storage_data.get("data_dir", "data")) / "ski-data.db"
        ),
    )

    scheduler_data = dict(data.get("scheduler") or {})
    enabled_override = _bool_from_env(env.get(f"{ENV_PREFIX}SCHEDULER_ENABLED"))
    if enabled_override is not None:
        scheduler_data["enabled"] = enabled_override

    logging_data = dict(data.get("logging") or {})
    level_override = env.get(f"{ENV_PREFIX}LOG_LEVEL")
    if level_override:
        logging_data["level"] = level_override
    json_override = _bool_from_env(env.get(f"{ENV_PREFIX}LOG_JSON"))
    if json_override is not None:
        logging_data["json"] = json_override

    try:
        schedule = ScheduleConfig(**schedule_data)
    except TypeError as exc:
        raise ConfigError(f"Invalid schedule section: {exc}") from exc
    _validate_hour(schedule.target_hour, "schedule.target_hour")

    return AppConfig(
        resort_settings=tuple(ResortSettings.from_dict(resort) for resort in data.get("resorts") or []),
        schedule=schedule,
        storage=storage,
        scheduler=SchedulerConfig(**scheduler_data) if scheduler_data else SchedulerConfig(),
        logging=LoggingConfig(**logging_data) if logging_data else LoggingConfig(),
    )
