# src/engine/scanner.py — v1
"""Artifact scanner — find generated files by their provenance headers.

Walks a scope directory inside the project, reads the head of every file
and maps phase id -> paths for headers matching a (series, version).
Manual-extension paths and excluded directories are never mapped.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from phasekit.core.models import ArtifactRecord, Manifest
from phasekit.provenance.codec import decode_header
from phasekit.storage import layout

logger = logging.getLogger(__name__)

# Headers are a handful of short lines at the very top of a file.
HEADER_PROBE_BYTES = 8192

DEFAULT_EXCLUDE_DIRS = (".git", "node_modules", ".venv", "venv", "__pycache__", "dist", "build")


@dataclass
class ScanResult:
    """Generated artifacts found under a scope."""

    artifacts: list[ArtifactRecord] = field(default_factory=list)
    by_phase: dict[str, list[str]] = field(default_factory=dict)
    manual_skipped: list[str] = field(default_factory=list)
    other_versions: dict[str, int] = field(default_factory=dict)
    files_scanned: int = 0

    @property
    def phase_ids(self) -> list[str]:
        return sorted(self.by_phase)

    @property
    def total_artifacts(self) -> int:
        return sum(len(paths) for paths in self.by_phase.values())


class ArtifactScanner:
    """Scan project files for provenance headers."""

    def __init__(
        self,
        project_root: Path,
        exclude_dirs: list[str] | tuple[str, ...] = DEFAULT_EXCLUDE_DIRS,
        state_dir: str = layout.DEFAULT_STATE_DIR,
    ) -> None:
        self._root = Path(project_root)
        self._exclude = {*exclude_dirs, state_dir}

    def scan(
        self,
        scope: Path,
        series: str,
        version: str,
        manifests: Iterable[Manifest] = (),
    ) -> ScanResult:
        """Map phase id -> project-relative paths generated by series@version.

        Args:
            scope: Directory to search, absolute or relative to the project root.
            manifests: Manifests whose manual-extension patterns exclude paths.

        Raises:
            ValueError: If scope is not a directory inside the project.
        """
        root = self._root.resolve()
        scope_dir = scope if scope.is_absolute() else self._root / scope
        scope_dir = scope_dir.resolve()
        if not scope_dir.is_dir():
            raise ValueError(f"Scan scope is not a directory: {scope}")
        if scope_dir != root and root not in scope_dir.parents:
            raise ValueError(f"Scan scope {scope} is outside the project {self._root}")

        manifests = list(manifests)
        result = ScanResult()
        for dirpath, dirnames, filenames in os.walk(scope_dir):
            dirnames[:] = sorted(d for d in dirnames if d not in self._exclude)
            for name in sorted(filenames):
                path = Path(dirpath) / name
                rel = path.relative_to(root).as_posix()
                result.files_scanned += 1
                if any(m.is_manual_extension(rel) for m in manifests):
                    result.manual_skipped.append(rel)
                    continue
                fields = self._read_header(path, rel)
                if fields is None or fields.series != series:
                    continue
                if fields.version != version:
                    result.other_versions[fields.version] = (
                        result.other_versions.get(fields.version, 0) + 1
                    )
                    continue
                result.artifacts.append(ArtifactRecord(path=rel, provenance=fields))
                result.by_phase.setdefault(fields.phase_id, []).append(rel)

        logger.info(
            "Scanned %s: %d files, %d artifacts of %s@%s across %d phases",
            scope_dir, result.files_scanned, result.total_artifacts,
            series, version, len(result.by_phase),
        )
        return result

    @staticmethod
    def _read_header(path: Path, rel: str):
        try:
            with path.open("rb") as f:
                head = f.read(HEADER_PROBE_BYTES)
        except OSError as exc:
            logger.warning("Cannot read %s: %s", rel, exc)
            return None
        if b"\0" in head:
            return None
        return decode_header(head.decode("utf-8", errors="replace"), rel)
