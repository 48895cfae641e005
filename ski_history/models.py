"""Typed records for vendor payloads and the generated history files."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

DATA_KINDS = ("terrain", "snow")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "open"}
    return bool(value)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


@dataclass
class TrailItem:
    """A single trail as published in a resort's terrain feed.

    The vendor feed is inconsistent about which fields are present, so the
    derived values fall back in a fixed order:

    * ``status``: explicit ``Status``, otherwise ``IsOpen`` as Open/Closed.
    * ``grooming_status``: explicit ``GroomingStatus``, otherwise "Groomed"
      when ``IsGroomed`` is set, otherwise None.
    * ``grooming_type``: ``Type``, otherwise ``TrailType``.
    """

    name: str
    trail_id: Optional[str] = None
    difficulty: Optional[str] = None
    trail_type: Optional[str] = None
    is_open: bool = False
    is_groomed: bool = False
    explicit_status: Optional[str] = None
    explicit_grooming_status: Optional[str] = None
    explicit_type: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "TrailItem":
        return cls(
            name=_as_text(data.get("Name")) or "Unknown",
            trail_id=_as_text(data.get("Id")),
            difficulty=_as_text(data.get("Difficulty")),
            trail_type=_as_text(data.get("TrailType")),
            is_open=_as_bool(data.get("IsOpen")),
            is_groomed=_as_bool(data.get("IsGroomed")),
            explicit_status=_as_text(data.get("Status")),
            explicit_grooming_status=_as_text(data.get("GroomingStatus")),
            explicit_type=_as_text(data.get("Type")),
            raw=dict(data),
        )

    @property
    def status(self) -> str:
        return self.explicit_status or ("Open" if self.is_open else "Closed")

    @property
    def grooming_status(self) -> Optional[str]:
        if self.explicit_grooming_status:
            return self.explicit_grooming_status
        return "Groomed" if self.is_groomed else None

    @property
    def grooming_type(self) -> Optional[str]:
        return self.explicit_type or self.trail_type


@dataclass
class LiftItem:
    name: str
    lift_id: Optional[str] = None
    is_open: bool = False
    explicit_status: Optional[str] = None
    lift_type: Optional[str] = None
    wait_minutes: Optional[int] = None
    capacity: Optional[int] = None
    mountain: Optional[str] = None
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "LiftItem":
        lift_id = data.get("Id", data.get("SortOrder"))
        return cls(
            name=_as_text(data.get("Name")) or "Unknown",
            lift_id=_as_text(lift_id),
            is_open=_as_bool(data.get("IsOpen")),
            explicit_status=_as_text(data.get("Status")),
            lift_type=_as_text(data.get("Type")),
            wait_minutes=_as_int(data.get("WaitTimeInMinutes")),
            capacity=_as_int(data.get("Capacity")),
            mountain=_as_text(data.get("Mountain")),
            open_time=_as_text(data.get("OpenTime")),
            close_time=_as_text(data.get("CloseTime")),
            raw=dict(data),
        )

    @property
    def status(self) -> str:
        return self.explicit_status or ("Open" if self.is_open else "Closed")


@dataclass
class GroomingArea:
    name: str
    trails: List[TrailItem] = field(default_factory=list)
    lifts: List[LiftItem] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "GroomingArea":
        trails = data.get("Trails") or []
        lifts = data.get("Lifts") or []
        return cls(
            name=_as_text(data.get("Name")) or "Unknown",
            trails=[TrailItem.from_payload(t) for t in trails if isinstance(t, Mapping)],
            lifts=[LiftItem.from_payload(l) for l in lifts if isinstance(l, Mapping)],
        )


@dataclass
class TerrainFeed:
    """Validated view over a raw terrain status payload."""

    areas: List[GroomingArea] = field(default_factory=list)
    lifts: List[LiftItem] = field(default_factory=list)
    resort_id: Optional[str] = None
    date: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["TerrainFeed"]:
        """Build a feed, or return None when the payload has no grooming areas.

        Payloads wrapped as ``{"FMR": {...}}`` are unwrapped first.
        """
        if not isinstance(payload, Mapping):
            return None
        if isinstance(payload.get("FMR"), Mapping):
            payload = payload["FMR"]
        areas = payload.get("GroomingAreas")
        if not isinstance(areas, list):
            return None
        lifts = payload.get("Lifts") or []
        return cls(
            areas=[GroomingArea.from_payload(a) for a in areas if isinstance(a, Mapping)],
            lifts=[LiftItem.from_payload(l) for l in lifts if isinstance(l, Mapping)],
            resort_id=_as_text(payload.get("ResortId")),
            date=_as_text(payload.get("Date")),
        )

    def trails(self) -> List[TrailItem]:
        return [trail for area in self.areas for trail in area.trails]

    def all_lifts(self) -> List[LiftItem]:
        """Area lifts followed by top-level lifts, de-duplicated by name."""
        seen = set()
        lifts: List[LiftItem] = []
        for lift in [l for area in self.areas for l in area.lifts] + self.lifts:
            if lift.name in seen:
                continue
            seen.add(lift.name)
            lifts.append(lift)
        return lifts

    def area_for_trail(self, trail_name: str) -> Optional[str]:
        for area in self.areas:
            if any(trail.name == trail_name for trail in area.trails):
                return area.name
        return None


@dataclass
class TerrainStatusRecord:
    """One ``terrain_status`` row: a trail or lift on a given day."""

    date: str
    item_name: str
    item_type: str = "trail"
    status: Optional[str] = None
    grooming_status: Optional[str] = None
    grooming_type: Optional[str] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_groomed(self) -> bool:
        return bool(self.grooming_status)

    @property
    def is_open(self) -> bool:
        return self.status == "Open"


@dataclass
class DayOfWeekStat:
    day: str
    percentage: int = 0
    groomed: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day,
            "percentage": self.percentage,
            "groomed": self.groomed,
            "total": self.total,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DayOfWeekStat":
        return cls(
            day=data["day"],
            percentage=data.get("percentage", 0),
            groomed=data.get("groomed", 0),
            total=data.get("total", 0),
        )


@dataclass
class TrailStats:
    season_start_date: Optional[str] = None
    days_tracked: int = 0
    days_groomed: int = 0
    grooming_percentage: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_groomed: Optional[str] = None
    day_of_week: List[DayOfWeekStat] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seasonStartDate": self.season_start_date,
            "daysTracked": self.days_tracked,
            "daysGroomed": self.days_groomed,
            "groomingPercentage": self.grooming_percentage,
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "lastGroomed": self.last_groomed,
            "dayOfWeek": [stat.to_dict() for stat in self.day_of_week],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrailStats":
        return cls(
            season_start_date=data.get("seasonStartDate"),
            days_tracked=data.get("daysTracked", 0),
            days_groomed=data.get("daysGroomed", 0),
            grooming_percentage=data.get("groomingPercentage", 0),
            current_streak=data.get("currentStreak", 0),
            longest_streak=data.get("longestStreak", 0),
            last_groomed=data.get("lastGroomed"),
            day_of_week=[DayOfWeekStat.from_dict(d) for d in data.get("dayOfWeek", [])],
        )


@dataclass
class HistoryEntry:
    date: str
    is_open: bool = False
    is_groomed: bool = False
    grooming_status: Optional[str] = None
    grooming_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "isOpen": self.is_open,
            "isGroomed": self.is_groomed,
            "groomingStatus": self.grooming_status,
            "groomingType": self.grooming_type,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HistoryEntry":
        return cls(
            date=data["date"],
            is_open=data.get("isOpen", False),
            is_groomed=data.get("isGroomed", False),
            grooming_status=data.get("groomingStatus"),
            grooming_type=data.get("groomingType"),
        )


@dataclass
class CurrentStatus:
    date: Optional[str] = None
    is_open: bool = False
    is_groomed: bool = False
    grooming_status: Optional[str] = None
    status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "isOpen": self.is_open,
            "isGroomed": self.is_groomed,
            "groomingStatus": self.grooming_status,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CurrentStatus":
        return cls(
            date=data.get("date"),
            is_open=data.get("isOpen", False),
            is_groomed=data.get("isGroomed", False),
            grooming_status=data.get("groomingStatus"),
            status=data.get("status"),
        )


@dataclass
class TrailArtifact:
    """Per-trail rollup written to ``trails/data/{slug}.json``.

    ``generated`` is bookkeeping only and is left out of equality.
    """

    trail_name: str
    trail_slug: str
    resort: str
    resort_name: str
    area: str = "Unknown"
    difficulty: str = "Unknown"
    trail_type: str = "Skiing"
    current_status: CurrentStatus = field(default_factory=CurrentStatus)
    stats: TrailStats = field(default_factory=TrailStats)
    history: List[HistoryEntry] = field(default_factory=list)
    generated: Optional[datetime] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trailName": self.trail_name,
            "trailSlug": self.trail_slug,
            "resort": self.resort,
            "resortName": self.resort_name,
            "area": self.area,
            "difficulty": self.difficulty,
            "trailType": self.trail_type,
            "currentStatus": self.current_status.to_dict(),
            "stats": self.stats.to_dict(),
            "history": [entry.to_dict() for entry in self.history],
            "generated": self.generated.isoformat() if self.generated else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrailArtifact":
        generated = data.get("generated")
        return cls(
            trail_name=data["trailName"],
            trail_slug=data["trailSlug"],
            resort=data.get("resort", ""),
            resort_name=data.get("resortName", ""),
            area=data.get("area") or "Unknown",
            difficulty=data.get("difficulty") or "Unknown",
            trail_type=data.get("trailType") or "Skiing",
            current_status=CurrentStatus.from_dict(data.get("currentStatus") or {}),
            stats=TrailStats.from_dict(data.get("stats") or {}),
            history=[HistoryEntry.from_dict(h) for h in data.get("history") or []],
            generated=datetime.fromisoformat(generated) if generated else None,
        )


@dataclass
class TrailSummary:
    name: str
    slug: str
    area: str
    difficulty: str
    is_groomed_today: bool
    is_open: bool
    grooming_percentage: int
    current_streak: int

    @classmethod
    def from_artifact(cls, artifact: TrailArtifact) -> "TrailSummary":
        return cls(
            name=artifact.trail_name,
            slug=artifact.trail_slug,
            area=artifact.area,
            difficulty=artifact.difficulty,
            is_groomed_today=artifact.current_status.is_groomed,
            is_open=artifact.current_status.is_open,
            grooming_percentage=artifact.stats.grooming_percentage,
            current_streak=artifact.stats.current_streak,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "slug": self.slug,
            "area": self.area,
            "difficulty": self.difficulty,
            "isGroomedToday": self.is_groomed_today,
            "isOpen": self.is_open,
            "groomingPercentage": self.grooming_percentage,
            "currentStreak": self.current_streak,
        }


@dataclass
class TrailsIndex:
    resort: str
    resort_name: str
    trails: List[TrailSummary] = field(default_factory=list)
    last_updated: Optional[datetime] = field(default=None, compare=False)

    @property
    def trail_count(self) -> int:
        return len(self.trails)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resort": self.resort,
            "resortName": self.resort_name,
            "trailCount": self.trail_count,
            "trails": [trail.to_dict() for trail in self.trails],
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }


@dataclass
class LiftRecord:
    """One NDJSON line in ``lifts/{date}.ndjson``."""

    timestamp: datetime
    local_time: str
    resort: str
    name: str
    lift_id: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None
    wait_minutes: Optional[int] = None
    capacity: Optional[int] = None
    mountain: Optional[str] = None
    open_time: Optional[str] = None
    close_time: Optional[str] = None

    @classmethod
    def from_lift(cls, lift: LiftItem, *, resort: str, timestamp: datetime, local_time: str) -> "LiftRecord":
        return cls(
            timestamp=timestamp,
            local_time=local_time,
            resort=resort,
            name=lift.name,
            lift_id=lift.lift_id,
            status=lift.status,
            type=lift.lift_type,
            wait_minutes=lift.wait_minutes,
            capacity=lift.capacity,
            mountain=lift.mountain,
            open_time=lift.open_time,
            close_time=lift.close_time,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "localTime": self.local_time,
            "resort": self.resort,
            "liftId": self.lift_id,
            "name": self.name,
            "status": self.status,
            "type": self.type,
            "waitMinutes": self.wait_minutes,
            "capacity": self.capacity,
            "mountain": self.mountain,
            "openTime": self.open_time,
            "closeTime": self.close_time,
        }


@dataclass
class OperatingWindow:
    is_open: bool
    reason: str
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    current_time: Optional[str] = None
