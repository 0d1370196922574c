from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


class SnapshotNotFoundError(RuntimeError):
    """Raised when a snapshot number or one of its groups does not exist."""


class SnapshotIndexError(RuntimeError):
    """Raised when the snapshot index exists but cannot be read."""


@dataclass(frozen=True)
class SnapshotInfo:
    """One entry of the snapshot index."""

    number: int
    timestamp: datetime
    comment: str = ""


class SnapshotStore:
    """
    File based snapshot storage.

    Layout:
        <root>/snapshot.index        JSON list of {number, timestamp, comment}
        <root>/<number>/<group>.json one JSON document per group
    """

    _ROOT_ENV = "TOPODIFF_SNAPSHOT_DIR"
    _INDEX_FILE = "snapshot.index"

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root) if root else self.default_root()

    @classmethod
    def default_root(cls) -> Path:
        """Return the snapshot root, honoring env and XDG overrides."""
        configured = os.getenv(cls._ROOT_ENV)
        if configured:
            return Path(configured)
        xdg = os.getenv("XDG_DATA_HOME")
        base = Path(xdg) if xdg else Path.home() / ".local" / "share"
        return base / "topodiff"

    @property
    def _index_path(self) -> Path:
        return self.root / self._INDEX_FILE

    def list_snapshots(self) -> list[SnapshotInfo]:
        """
        Return all indexed snapshots, oldest first.

        Raises:
            SnapshotIndexError: If the index file exists but is not a JSON list.
        """
        path = self._index_path
        if not path.exists():
            return []
        try:
            payload = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise SnapshotIndexError(f"Snapshot index {path} is unreadable: {exc}") from exc
        if not isinstance(payload, list):
            raise SnapshotIndexError(f"Snapshot index {path} is not a list.")
        snapshots = []
        for item in payload:
            try:
                snapshots.append(
                    SnapshotInfo(
                        number=int(item["number"]),
                        timestamp=datetime.fromisoformat(str(item["timestamp"])),
                        comment=str(item.get("comment") or ""),
                    )
                )
            except (KeyError, TypeError, ValueError):
                continue
        return sorted(snapshots, key=lambda s: s.number)

    def create_snapshot(self, comment: str = "") -> int:
        """
        Register a new snapshot and return its number.

        The number is past every indexed snapshot and every snapshot directory
        on disk. An unreadable index raises `SnapshotIndexError` rather than
        restarting the numbering.
        """
        snapshots = self.list_snapshots()
        taken = [s.number for s in snapshots] + self._snapshot_dirs()
        number = max(taken, default=-1) + 1
        snapshots.append(
            SnapshotInfo(
                number=number, timestamp=datetime.now(timezone.utc), comment=comment
            )
        )
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / str(number)).mkdir(parents=True, exist_ok=True)
        self._index_path.write_text(
            json.dumps(
                [
                    {
                        "number": s.number,
                        "timestamp": s.timestamp.isoformat(),
                        "comment": s.comment,
                    }
                    for s in snapshots
                ],
                indent=2,
            )
        )
        return number

    def _snapshot_dirs(self) -> list[int]:
        """Numbers of the snapshot directories on disk, indexed or not."""
        if not self.root.is_dir():
            return []
        return [int(p.name) for p in self.root.iterdir() if p.is_dir() and p.name.isdecimal()]

    def _group_path(self, number: int, group: str) -> Path:
        return self.root / str(number) / f"{group}.json"

    def write(self, number: int, group: str, payload: Any) -> None:
        """Persist one group of a snapshot."""
        path = self._group_path(number, group)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload))

    def read(self, number: int, group: str) -> Any:
        """Load one group of a snapshot."""
        path = self._group_path(number, group)
        if not path.exists():
            raise SnapshotNotFoundError(
                f"Snapshot {number} has no '{group}' data ({path})."
            )
        try:
            return json.loads(path.read_text())
        except json.JSONDecodeError as exc:
            raise SnapshotNotFoundError(
                f"Snapshot {number} '{group}' data is not valid JSON: {exc}"
            ) from exc
