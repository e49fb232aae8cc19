# src/tracking/execution_log.py — v1
"""Execution log — one immutable JSON record per command run.

RunRecorder accumulates phase entries while a command executes;
ExecutionLog persists the finished record under
<logs>/<YYYY-MM-DD>/<HHMMSSffffff>_<series>_<command>.json.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from phasekit.storage import layout
from phasekit.tracking.models import ExecutionLogRecord, PhaseLogEntry, PhaseStatus

logger = logging.getLogger(__name__)


class RunRecorder:
    """Accumulates phase results during one command invocation."""

    def __init__(
        self,
        series: str,
        version: str,
        command: str,
        agent: str | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        self.series = series
        self.version = version
        self.command = command
        self.agent = agent
        self.timestamp = timestamp or datetime.now(timezone.utc)
        self._entries: dict[str, PhaseLogEntry] = {}
        self._notes: list[str] = []
        self._details: dict[str, Any] = {}

    def record_phase(self, entry: PhaseLogEntry) -> None:
        """Record the outcome of a phase (in completion order)."""
        self._entries[entry.phase_id] = entry

    def note(self, message: str) -> None:
        self._notes.append(message)

    def detail(self, key: str, value: Any) -> None:
        self._details[key] = value

    @property
    def entries(self) -> list[PhaseLogEntry]:
        return list(self._entries.values())

    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in PhaseStatus}
        counts["already_satisfied"] = 0
        for entry in self._entries.values():
            counts[entry.status.value] += 1
            if entry.already_satisfied:
                counts["already_satisfied"] += 1
        return counts

    def build_record(self, status: str) -> ExecutionLogRecord:
        created: list[str] = []
        modified: list[str] = []
        build_results = []
        for entry in self._entries.values():
            created.extend(p for p in entry.created_files if p not in created)
            modified.extend(p for p in entry.modified_files if p not in modified)
            if entry.build is not None and not entry.build.skipped:
                build_results.append(entry.build.passed)

        return ExecutionLogRecord(
            timestamp=self.timestamp,
            series=self.series,
            version=self.version,
            command=self.command,
            agent=self.agent,
            phases_run=list(self._entries),
            results=dict(self._entries),
            created_files=created,
            modified_files=modified,
            build_passed=all(build_results) if build_results else None,
            status=status,
            summary=self.counts(),
            details=dict(self._details),
            notes=list(self._notes),
        )


class ExecutionLog:
    """Append-only directory of ExecutionLogRecord files."""

    def __init__(self, logs_root: Path) -> None:
        self._root = Path(logs_root).expanduser()
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def append(self, record: ExecutionLogRecord) -> Path:
        """Persist a record in a fresh file; existing records are never touched."""
        base = layout.log_record_path(
            self._root, record.timestamp, record.series, record.command
        )
        data = record.model_dump_json(indent=2).encode("utf-8")
        base.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            path = self._write_exclusive(base, data)
        logger.info(
            "Execution log: %s %s@%s -> %s",
            record.command, record.series, record.version, path,
        )
        return path

    @staticmethod
    def _write_exclusive(base: Path, data: bytes) -> Path:
        """Create a new record file; O_EXCL keeps concurrent processes apart."""
        suffix = 0
        while True:
            path = base if suffix == 0 else base.with_name(f"{base.stem}-{suffix}{base.suffix}")
            try:
                with path.open("xb") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                return path
            except FileExistsError:
                suffix += 1

    def records(
        self, series: str | None = None, command: str | None = None
    ) -> list[ExecutionLogRecord]:
        """All stored records, oldest first, optionally filtered."""
        if not self._root.is_dir():
            return []
        result: list[ExecutionLogRecord] = []
        for path in sorted(self._root.glob("*/*.json")):
            try:
                record = ExecutionLogRecord(**json.loads(path.read_text(encoding="utf-8")))
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning("Skipping unreadable log record %s: %s", path, e)
                continue
            if series is not None and record.series != series:
                continue
            if command is not None and record.command != command:
                continue
            result.append(record)
        return result
