# pricewatch/storage/snapshot_store.py

"""Latest-snapshot-per-user stores.

Only the most recent snapshot is kept; ``set`` replaces it wholesale.
Two scans for the same user running at once may both read the same
"old" snapshot and the later write wins. No locking is attempted.
"""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pricewatch.models.pricing_tier import Snapshot
from pricewatch.storage.database import connect

logger = logging.getLogger("pricewatch.snapshots")


class SnapshotStore(Protocol):
    """Key-value store holding one snapshot per user."""

    def get(self, user_id: str) -> Snapshot | None: ...

    def set(self, user_id: str, snapshot: Snapshot) -> None: ...


class InMemorySnapshotStore:
    """Process-local store, used by tests and one-off runs."""

    def __init__(self) -> None:
        self._snapshots: dict[str, Snapshot] = {}

    def get(self, user_id: str) -> Snapshot | None:
        return self._snapshots.get(user_id)

    def set(self, user_id: str, snapshot: Snapshot) -> None:
        self._snapshots[user_id] = Snapshot(
            pricing=list(snapshot.pricing), source=snapshot.source,
        )


class SqliteSnapshotStore:
    """SQLite-backed store; one upserted row per user."""

    def __init__(
        self,
        db_path: Path | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        self._conn = conn or connect(db_path)

    def close(self) -> None:
        self._conn.close()

    def get(self, user_id: str) -> Snapshot | None:
        row = self._conn.execute(
            "SELECT snapshot FROM latest_snapshots WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        if row is None:
            return None
        try:
            data = json.loads(row[0])
        except json.JSONDecodeError as exc:
            logger.warning(
                "Discarding unreadable snapshot for %s: %s", user_id, exc,
            )
            return None
        if not isinstance(data, dict):
            return None
        return Snapshot.from_dict(data)

    def set(self, user_id: str, snapshot: Snapshot) -> None:
        ts = datetime.now().isoformat()
        self._conn.execute(
            "INSERT INTO latest_snapshots (user_id, snapshot, updated_at) "
            "VALUES (?, ?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET "
            "snapshot=excluded.snapshot, updated_at=excluded.updated_at",
            (user_id, json.dumps(snapshot.to_dict()), ts),
        )
        self._conn.commit()
        logger.info(
            "Stored %d-tier %s snapshot for %s",
            len(snapshot.pricing),
            snapshot.source,
            user_id,
        )
