# src/cache/sqlite_store.py — v1
"""SQLite-based phase state store (STATE_BACKEND=sqlite).

Uses stdlib sqlite3. Keeps every phase record of a project in one file.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path

from phasekit.cache.base_cache_store import BaseStateStore
from phasekit.core.models import PhaseStateRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS phase_state (
    series TEXT NOT NULL,
    version TEXT NOT NULL,
    phase_id TEXT NOT NULL,
    data TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (series, version, phase_id)
);
CREATE INDEX IF NOT EXISTS idx_series_version ON phase_state(series, version);
"""


class SqliteStateStore(BaseStateStore):
    """SQLite-backed phase state store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, series: str, version: str, phase_id: str) -> PhaseStateRecord | None:
        """Retrieve a record by key."""
        with self._lock:
            row = self._conn.execute(
                "SELECT data FROM phase_state WHERE series = ? AND version = ? AND phase_id = ?",
                (series, version, phase_id),
            ).fetchone()
        if row is None:
            return None
        try:
            return PhaseStateRecord(**json.loads(row[0]))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Failed to deserialize phase state %s/%s/%s: %s", series, version, phase_id, e)
            return None

    async def put(self, record: PhaseStateRecord) -> None:
        """Store a record (upsert)."""
        with self._lock:
            self._conn.execute(
                """INSERT OR REPLACE INTO phase_state
                   (series, version, phase_id, data, updated_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    record.series,
                    record.version,
                    record.phase_id,
                    record.model_dump_json(),
                    record.updated_at.isoformat(),
                ),
            )
            self._conn.commit()

    async def list_records(
        self, series: str, version: str | None = None
    ) -> list[PhaseStateRecord]:
        """List stored records of a series."""
        with self._lock:
            if version is None:
                rows = self._conn.execute(
                    "SELECT data FROM phase_state WHERE series = ? ORDER BY version, phase_id",
                    (series,),
                ).fetchall()
            else:
                rows = self._conn.execute(
                    "SELECT data FROM phase_state WHERE series = ? AND version = ? ORDER BY phase_id",
                    (series, version),
                ).fetchall()
        return [PhaseStateRecord(**json.loads(r[0])) for r in rows]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
