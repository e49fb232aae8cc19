# src/cache/json_store.py — v1
"""JSON file-based phase state store (default STATE_BACKEND=json).

One file per (series, version, phase_id) under the state directory.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from phasekit.cache.base_cache_store import BaseStateStore
from phasekit.core.models import PhaseStateRecord
from phasekit.storage import layout
from phasekit.storage.local_writer import atomic_write_text

logger = logging.getLogger(__name__)


class JsonStateStore(BaseStateStore):
    """File-based state store using JSON files."""

    def __init__(self, state_root: Path) -> None:
        self._root = Path(state_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    async def get(self, series: str, version: str, phase_id: str) -> PhaseStateRecord | None:
        """Retrieve a record by key."""
        path = layout.phase_state_path(self._root, series, version, phase_id)
        if not path.exists():
            return None
        try:
            return PhaseStateRecord(**json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Failed to read phase state %s: %s", path, e)
            return None

    async def put(self, record: PhaseStateRecord) -> None:
        """Store a record atomically."""
        path = layout.phase_state_path(
            self._root, record.series, record.version, record.phase_id
        )
        atomic_write_text(path, record.model_dump_json(indent=2))

    async def list_records(
        self, series: str, version: str | None = None
    ) -> list[PhaseStateRecord]:
        """List stored records of a series."""
        base = self._root / layout.PHASE_STATE_DIR / series
        if not base.is_dir():
            return []
        pattern = f"{version}/*.json" if version else "*/*.json"
        records: list[PhaseStateRecord] = []
        for path in sorted(base.glob(pattern)):
            try:
                records.append(PhaseStateRecord(**json.loads(path.read_text(encoding="utf-8"))))
            except (json.JSONDecodeError, ValueError):
                logger.warning("Skipping unreadable phase state %s", path)
        return records
