# src/storage/archive.py — v1
"""Archival store — append-only backup of content before it is overwritten.

Every archived version of a file gets its own timestamped slot and one
line in index.jsonl. Nothing in this module deletes or rewrites a slot or
an index line.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from phasekit.core.models import ArchiveEntry
from phasekit.storage import layout

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArchiveStore:
    """File-based archive under a single root directory."""

    def __init__(self, archive_root: Path, clock: Clock | None = None) -> None:
        self._root = Path(archive_root).expanduser()
        self._clock = clock or _utcnow
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    async def archive_file(
        self,
        original_path: str,
        content: bytes,
        series: str,
        version: str,
        phase_id: str | None = None,
    ) -> ArchiveEntry:
        """Preserve the current content of a project file.

        The content is durable on disk before this returns, so callers may
        overwrite the original afterwards.
        """
        ts = self._clock()
        slot = self._claim_slot(layout.archived_file_path(self._root, original_path, ts))
        with slot.open("r+b") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        entry = ArchiveEntry(
            original_path=original_path,
            archive_path=slot.relative_to(self._root).as_posix(),
            timestamp=ts,
            series=series,
            version=version,
            phase_id=phase_id,
            sha256=hashlib.sha256(content).hexdigest(),
            kind="artifact",
        )
        self._append_index(entry)
        logger.info("Archived %s -> %s", original_path, entry.archive_path)
        return entry

    async def archive_manifest(
        self, series: str, version: str, files: dict[str, bytes]
    ) -> ArchiveEntry:
        """Preserve a whole manifest directory (manifest.json + phase documents).

        Args:
            series: Manifest series.
            version: Manifest version being archived.
            files: Relative path inside the manifest directory -> content.
        """
        ts = self._clock()
        target = layout.archived_manifest_dir(self._root, series, version, ts)
        suffix = 0
        while True:
            candidate = target if suffix == 0 else target.with_name(f"{target.name}-{suffix}")
            try:
                candidate.mkdir(parents=True, exist_ok=False)
                target = candidate
                break
            except FileExistsError:
                suffix += 1

        digest = hashlib.sha256()
        for rel_path in sorted(files):
            data = files[rel_path]
            digest.update(rel_path.encode("utf-8"))
            digest.update(data)
            path = target / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("xb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())

        entry = ArchiveEntry(
            original_path=f"{series}/{version}/{layout.MANIFEST_FILE}",
            archive_path=target.relative_to(self._root).as_posix(),
            timestamp=ts,
            series=series,
            version=version,
            sha256=digest.hexdigest(),
            kind="manifest",
        )
        self._append_index(entry)
        logger.info(
            "Archived manifest %s@%s (%d files) -> %s",
            series, version, len(files), entry.archive_path,
        )
        return entry

    def entries(self, original_path: str | None = None) -> list[ArchiveEntry]:
        """Index entries in append order, optionally for one original path."""
        index = layout.archive_index_path(self._root)
        if not index.exists():
            return []
        result: list[ArchiveEntry] = []
        with index.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                entry = ArchiveEntry(**json.loads(line))
                if original_path is None or entry.original_path == original_path:
                    result.append(entry)
        return result

    def read(self, entry: ArchiveEntry) -> bytes:
        """Read archived artifact content."""
        return (self._root / entry.archive_path).read_bytes()

    def read_manifest_files(self, entry: ArchiveEntry) -> dict[str, bytes]:
        """Read every file of an archived manifest directory."""
        base = self._root / entry.archive_path
        return {
            p.relative_to(base).as_posix(): p.read_bytes()
            for p in sorted(base.rglob("*"))
            if p.is_file()
        }

    def _claim_slot(self, slot: Path) -> Path:
        """Create an empty, previously unused slot file and return its path."""
        slot.parent.mkdir(parents=True, exist_ok=True)
        suffix = 0
        while True:
            candidate = slot if suffix == 0 else slot.with_name(f"{slot.name}-{suffix}")
            try:
                with candidate.open("xb"):
                    pass
                return candidate
            except FileExistsError:
                suffix += 1

    def _append_index(self, entry: ArchiveEntry) -> None:
        """Append one index line with a single write."""
        index = layout.archive_index_path(self._root)
        index.parent.mkdir(parents=True, exist_ok=True)
        line = entry.model_dump_json() + "\n"
        with self._lock, index.open("a", encoding="utf-8") as f:
            f.write(line)
            f.flush()
            os.fsync(f.fileno())
