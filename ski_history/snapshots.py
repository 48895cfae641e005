"""Dated JSON snapshots on disk and the files derived from them."""
from __future__ import annotations

import json
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .logging import get_logger
from .models import DATA_KINDS, LiftRecord, TrailArtifact, TrailsIndex

logger = get_logger(__name__)

DATE_FILE = re.compile(r"^\d{4}-\d{2}-\d{2}\.json$")
_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

LATEST_FILES = {"terrain": "latest.json", "snow": "latest-snow.json"}


@dataclass
class SnapshotResult:
    """A snapshot written during the current run."""

    resort_key: str
    kind: str
    date: str
    data: Dict[str, Any]


def _check_kind(kind: str) -> str:
    if kind not in DATA_KINDS:
        raise ValueError(f"Unknown data kind: {kind}")
    return kind


def _check_date(value: str) -> str:
    if not _DATE.match(value):
        raise ValueError(f"Expected an ISO date (YYYY-MM-DD), got {value!r}")
    return value


def write_json_atomic(path: Path, payload: Any) -> None:
    """Write JSON to a sibling temp file and swap it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
            handle.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def read_json(path: Path) -> Optional[Any]:
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


class SnapshotStore:
    """Date-keyed snapshot files plus the aggregate views built from them.

    Layout, relative to ``root``::

        {key}/terrain/{date}.json
        {key}/snow/{date}.json, {key}/snow/latest.json
        {key}/lifts/{date}.ndjson
        {key}/trails/data/{slug}.json, {key}/trails/index.json
        latest.json, latest-snow.json, index.json
    """

    def __init__(self, root: Path | str = Path("data")) -> None:
        self.root = Path(root)

    def resort_dir(self, resort_key: str) -> Path:
        return self.root / resort_key

    def path_for(self, resort_key: str, kind: str, date: str) -> Path:
        return self.resort_dir(resort_key) / _check_kind(kind) / f"{_check_date(date)}.json"

    def has_snapshot(self, resort_key: str, kind: str, date: str) -> bool:
        return self.path_for(resort_key, kind, date).exists()

    def save_snapshot(self, resort_key: str, kind: str, date: str, payload: Mapping[str, Any]) -> Path:
        path = self.path_for(resort_key, kind, date)
        write_json_atomic(path, dict(payload))
        logger.info("snapshot.saved", resort=resort_key, kind=kind, date=date, path=str(path))
        if kind == "snow":
            latest = path.parent / "latest.json"
            write_json_atomic(latest, dict(payload))
            logger.info("snapshot.latest_updated", resort=resort_key, kind=kind, path=str(latest))
        return path

    def load_snapshot(self, resort_key: str, kind: str, date: str) -> Optional[Dict[str, Any]]:
        return read_json(self.path_for(resort_key, kind, date))

    def snapshot_dates(self, resort_key: str, kind: str) -> List[str]:
        """Dates with a snapshot of ``kind``, most recent first."""
        directory = self.resort_dir(resort_key) / _check_kind(kind)
        if not directory.is_dir():
            return []
        files = sorted((p.name for p in directory.iterdir() if DATE_FILE.match(p.name)), reverse=True)
        return [name[: -len(".json")] for name in files]

    def latest_snow(self, resort_key: str) -> Optional[Dict[str, Any]]:
        return read_json(self.resort_dir(resort_key) / "snow" / "latest.json")

    def generate_aggregate_latest(
        self, results: Iterable[SnapshotResult], names: Mapping[str, str]
    ) -> Dict[str, Path]:
        """Overlay this run's snapshots onto ``latest.json`` and ``latest-snow.json``.

        Resorts without a snapshot in ``results`` keep whatever entry the
        aggregate already held.
        """
        by_kind: Dict[str, Dict[str, Dict[str, Any]]] = {kind: {} for kind in DATA_KINDS}
        for result in results:
            by_kind[_check_kind(result.kind)][result.resort_key] = {
                "date": result.date,
                "name": names.get(result.resort_key, result.resort_key),
                "data": result.data,
            }

        written: Dict[str, Path] = {}
        for kind, entries in by_kind.items():
            path = self.root / LATEST_FILES[kind]
            existing = read_json(path) or {}
            if not entries and not existing:
                continue
            merged = {**existing, **entries}
            write_json_atomic(path, merged)
            written[kind] = path
            logger.info(
                "snapshot.aggregate_written",
                kind=kind,
                path=str(path),
                updated=sorted(entries),
                retained=sorted(set(existing) - set(entries)),
            )
        return written

    def generate_index(self, resorts: Mapping[str, str], *, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Rescan every resort's terrain directory and rewrite ``index.json``."""
        now = now or datetime.now(timezone.utc)
        index: Dict[str, Any] = {"resorts": {}, "lastUpdated": now.isoformat()}
        for resort_key, name in resorts.items():
            terrain_dir = self.resort_dir(resort_key) / "terrain"
            if not terrain_dir.is_dir():
                continue
            files = [f"{date}.json" for date in self.snapshot_dates(resort_key, "terrain")]
            index["resorts"][resort_key] = {
                "name": name,
                "files": files,
                "latest": files[0] if files else None,
                "count": len(files),
            }
        write_json_atomic(self.root / "index.json", index)
        logger.info("snapshot.index_written", resorts=len(index["resorts"]))
        return index

    def lift_log_path(self, resort_key: str, date: str) -> Path:
        return self.resort_dir(resort_key) / "lifts" / f"{_check_date(date)}.ndjson"

    def append_lift_records(self, resort_key: str, date: str, records: Iterable[LiftRecord]) -> int:
        lines = [json.dumps(record.to_dict(), ensure_ascii=False) + "\n" for record in records]
        if not lines:
            return 0
        path = self.lift_log_path(resort_key, date)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.writelines(lines)
        return len(lines)

    def read_lift_records(self, resort_key: str, date: str) -> List[Dict[str, Any]]:
        path = self.lift_log_path(resort_key, date)
        if not path.exists():
            return []
        with path.open(encoding="utf-8") as handle:
            return [json.loads(line) for line in handle if line.strip()]

    def trails_dir(self, resort_key: str) -> Path:
        return self.resort_dir(resort_key) / "trails"

    def write_trail_artifact(self, resort_key: str, artifact: TrailArtifact) -> Path:
        path = self.trails_dir(resort_key) / "data" / f"{artifact.trail_slug}.json"
        write_json_atomic(path, artifact.to_dict())
        return path

    def load_trail_artifact(self, resort_key: str, slug: str) -> Optional[TrailArtifact]:
        if "/" in slug or slug.startswith("."):
            return None
        data = read_json(self.trails_dir(resort_key) / "data" / f"{slug}.json")
        return TrailArtifact.from_dict(data) if data else None

    def load_trail_artifacts(self, resort_key: str) -> List[TrailArtifact]:
        directory = self.trails_dir(resort_key) / "data"
        if not directory.is_dir():
            return []
        artifacts: List[TrailArtifact] = []
        for path in sorted(directory.glob("*.json")):
            try:
                artifacts.append(TrailArtifact.from_dict(json.loads(path.read_text(encoding="utf-8"))))
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("trails.artifact_unreadable", resort=resort_key, path=str(path), error=str(exc))
        return artifacts

    def write_trails_index(self, resort_key: str, index: TrailsIndex) -> Path:
        path = self.trails_dir(resort_key) / "index.json"
        write_json_atomic(path, index.to_dict())
        return path

    def load_trails_index(self, resort_key: str) -> Optional[Dict[str, Any]]:
        return read_json(self.trails_dir(resort_key) / "index.json")
