"""SQLite store for resorts, terrain rows and snow conditions."""
from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .config import EffectiveResortConfig
from .logging import get_logger
from .models import TerrainFeed, TerrainStatusRecord
from .snapshots import SnapshotStore

logger = get_logger(__name__)


def _snow_number(section: Any, key: str) -> Optional[float]:
    if not isinstance(section, Mapping):
        return None
    value = section.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class TerrainStore:
    """Relational record store for resorts, daily terrain rows and snow reports.

    Rows are keyed by ``(resort_id, date, item_name)`` for terrain and
    ``(resort_id, date)`` for snow. Every write is an ``INSERT OR REPLACE`` on
    that key, so re-ingesting a day replaces its rows instead of adding new ones.
    """

    def __init__(self, db_path: Path | str = Path("data/ski-data.db")) -> None:
        self.db_path = Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._ensure_schema()

    def __enter__(self) -> "TerrainStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("TerrainStore is closed")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _ensure_schema(self) -> None:
        with self.conn as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS resorts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    key TEXT UNIQUE NOT NULL,
                    name TEXT NOT NULL,
                    timezone TEXT,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS terrain_status (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    resort_id INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    item_name TEXT NOT NULL,
                    item_type TEXT,
                    status TEXT,
                    grooming_status TEXT,
                    grooming_type TEXT,
                    raw_data TEXT,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (resort_id) REFERENCES resorts(id),
                    UNIQUE(resort_id, date, item_name)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS snow_conditions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    resort_id INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    overnight_snowfall_inches REAL,
                    base_depth_inches REAL,
                    new_snow_24h_inches REAL,
                    new_snow_48h_inches REAL,
                    new_snow_7day_inches REAL,
                    season_total_inches REAL,
                    weather_condition TEXT,
                    temperature REAL,
                    raw_data TEXT,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (resort_id) REFERENCES resorts(id),
                    UNIQUE(resort_id, date)
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_terrain_resort_date ON terrain_status(resort_id, date)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_terrain_name ON terrain_status(item_name)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_terrain_grooming ON terrain_status(grooming_status)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_snow_resort_date ON snow_conditions(resort_id, date)"
            )
            self._ensure_column(conn, "resorts", "timezone TEXT")
            self._ensure_column(conn, "snow_conditions", "temperature REAL")

    def upsert_resort(self, key: str, name: str, timezone: Optional[str]) -> int:
        """Return the id for ``key``, creating the row on first sight.

        Name and timezone of an existing row are left untouched.
        """
        row = self.conn.execute("SELECT id FROM resorts WHERE key = ?", (key,)).fetchone()
        if row:
            return int(row["id"])
        with self.conn as conn:
            conn.execute(
                "INSERT OR IGNORE INTO resorts (key, name, timezone) VALUES (?, ?, ?)",
                (key, name, timezone),
            )
        row = self.conn.execute("SELECT id FROM resorts WHERE key = ?", (key,)).fetchone()
        logger.info("storage.resort_created", resort=key, resort_id=row["id"])
        return int(row["id"])

    def resort_id(self, key: str) -> Optional[int]:
        row = self.conn.execute("SELECT id FROM resorts WHERE key = ?", (key,)).fetchone()
        return int(row["id"]) if row else None

    def ingest_terrain(self, resort_id: int, date: str, payload: Any) -> int:
        """Flatten every trail and lift in ``payload`` into ``terrain_status`` rows.

        Returns the number of rows written; a payload without grooming areas
        writes nothing and returns 0.
        """
        feed = TerrainFeed.from_payload(payload)
        if feed is None:
            logger.warning("ingest.terrain.malformed", resort_id=resort_id, date=date)
            return 0

        rows: List[Tuple[Any, ...]] = []
        for trail in feed.trails():
            rows.append(
                (
                    resort_id,
                    date,
                    trail.name,
                    "trail",
                    trail.status,
                    trail.grooming_status,
                    trail.grooming_type,
                    json.dumps(trail.raw),
                )
            )
        for lift in feed.all_lifts():
            rows.append(
                (resort_id, date, lift.name, "lift", lift.status, None, None, json.dumps(lift.raw))
            )

        with self.conn as conn:
            conn.executemany(
                """
                INSERT OR REPLACE INTO terrain_status (
                    resort_id, date, item_name, item_type, status,
                    grooming_status, grooming_type, raw_data
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        logger.info("ingest.terrain.complete", resort_id=resort_id, date=date, rows=len(rows))
        return len(rows)

    def ingest_snow(self, resort_id: int, date: str, payload: Any) -> int:
        """Upsert the cleaned snow document for one resort and day. Returns rows written."""
        if not isinstance(payload, Mapping) or not isinstance(payload.get("snowfall"), Mapping):
            logger.warning("ingest.snow.malformed", resort_id=resort_id, date=date)
            return 0

        snowfall = payload["snowfall"]
        temperature = None
        forecast = payload.get("forecast")
        if isinstance(forecast, Mapping):
            for location in forecast.get("locations") or []:
                today = location.get("today") if isinstance(location, Mapping) else None
                temperature = _snow_number(today, "high_f")
                if temperature is not None:
                    break

        with self.conn as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO snow_conditions (
                    resort_id, date, overnight_snowfall_inches, base_depth_inches,
                    new_snow_24h_inches, new_snow_48h_inches, new_snow_7day_inches,
                    season_total_inches, weather_condition, temperature, raw_data
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    resort_id,
                    date,
                    _snow_number(snowfall, "overnight_inches"),
                    _snow_number(payload.get("baseDepth"), "inches"),
                    _snow_number(snowfall, "24hour_inches"),
                    _snow_number(snowfall, "48hour_inches"),
                    _snow_number(snowfall, "7day_inches"),
                    _snow_number(snowfall, "season_total_inches"),
                    payload.get("conditions"),
                    temperature,
                    json.dumps(dict(payload)),
                ),
            )
        logger.info("ingest.snow.complete", resort_id=resort_id, date=date)
        return 1

    def trail_names(self, resort_id: int, since: str) -> List[str]:
        rows = self.conn.execute(
            """
            SELECT DISTINCT item_name FROM terrain_status
            WHERE resort_id = ? AND item_type = 'trail' AND date >= ?
            ORDER BY item_name
            """,
            (resort_id, since),
        ).fetchall()
        return [row["item_name"] for row in rows]

    def trail_rows(self, resort_id: int, trail_name: str, since: str) -> List[TerrainStatusRecord]:
        rows = self.conn.execute(
            """
            SELECT date, item_name, item_type, status, grooming_status, grooming_type, raw_data
            FROM terrain_status
            WHERE resort_id = ? AND item_name = ? AND item_type = 'trail' AND date >= ?
            ORDER BY date DESC
            """,
            (resort_id, trail_name, since),
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def count_terrain_rows(
        self, resort_id: Optional[int] = None, date: Optional[str] = None, item_name: Optional[str] = None
    ) -> int:
        clauses: List[str] = []
        params: List[object] = []
        for column, value in (("resort_id", resort_id), ("date", date), ("item_name", item_name)):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        query = "SELECT COUNT(*) FROM terrain_status"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        return int(self.conn.execute(query, tuple(params)).fetchone()[0])

    def snow_row(self, resort_id: int, date: str) -> Optional[Dict[str, Any]]:
        row = self.conn.execute(
            "SELECT * FROM snow_conditions WHERE resort_id = ? AND date = ?", (resort_id, date)
        ).fetchone()
        return dict(row) if row else None

    def count_snow_rows(self, resort_id: Optional[int] = None) -> int:
        if resort_id is None:
            return int(self.conn.execute("SELECT COUNT(*) FROM snow_conditions").fetchone()[0])
        return int(
            self.conn.execute(
                "SELECT COUNT(*) FROM snow_conditions WHERE resort_id = ?", (resort_id,)
            ).fetchone()[0]
        )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> TerrainStatusRecord:
        try:
            raw = json.loads(row["raw_data"]) if row["raw_data"] else {}
        except ValueError:
            raw = {}
        return TerrainStatusRecord(
            date=row["date"],
            item_name=row["item_name"],
            item_type=row["item_type"] or "trail",
            status=row["status"],
            grooming_status=row["grooming_status"],
            grooming_type=row["grooming_type"],
            raw_data=raw if isinstance(raw, dict) else {},
        )

    @staticmethod
    def _ensure_column(conn: sqlite3.Connection, table: str, column_def: str) -> None:
        column_name = column_def.split()[0]
        existing = {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
        if column_name not in existing:
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {column_def}")


def import_history(
    store: TerrainStore, snapshots: SnapshotStore, resorts: Iterable[EffectiveResortConfig]
) -> Dict[str, Dict[str, int]]:
    """Re-ingest every dated terrain and snow snapshot on disk.

    Safe to repeat: rows are replaced on their natural keys.
    """
    totals: Dict[str, Dict[str, int]] = {}
    for resort in resorts:
        resort_id = store.upsert_resort(resort.key, resort.name, resort.timezone)
        counts = {"terrain": 0, "snow": 0}
        for date in snapshots.snapshot_dates(resort.key, "terrain"):
            try:
                counts["terrain"] += store.ingest_terrain(
                    resort_id, date, snapshots.load_snapshot(resort.key, "terrain", date)
                )
            except (ValueError, sqlite3.Error) as exc:
                logger.error("import.terrain.error", resort=resort.key, date=date, error=str(exc))
        for date in snapshots.snapshot_dates(resort.key, "snow"):
            try:
                counts["snow"] += store.ingest_snow(
                    resort_id, date, snapshots.load_snapshot(resort.key, "snow", date)
                )
            except (ValueError, sqlite3.Error) as exc:
                logger.error("import.snow.error", resort=resort.key, date=date, error=str(exc))
        logger.info("import.resort.complete", resort=resort.key, **counts)
        totals[resort.key] = counts
    return totals

