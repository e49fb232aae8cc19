# src/manifest/store.py — v1
"""Manifest store — load and persist manifests per (series, version).

Layout per version directory:
    manifest.json          series, version, description, ordered phase list
    phases/<id>.md         one phase document per phase

A stored version is never overwritten; evolution writes a new version.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from phasekit.core.errors import PhaseDocumentError, UnknownSeriesOrVersionError, VersionConflictError
from phasekit.core.models import Manifest, PhaseDefinition
from phasekit.core.versioning import version_sort_key
from phasekit.manifest.phase_document import (
    parse_phase_document,
    read_document,
    render_phase_document,
)
from phasekit.storage import layout
from phasekit.storage.local_writer import atomic_write_text

logger = logging.getLogger(__name__)


class ManifestStore:
    """File-based manifest repository rooted at the manifests directory."""

    def __init__(self, manifests_root: Path) -> None:
        self._root = Path(manifests_root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def list_series(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(d.name for d in self._root.iterdir() if d.is_dir())

    def list_versions(self, series: str) -> list[str]:
        """Stored versions of a series, oldest first."""
        sdir = layout.series_dir(self._root, series)
        if not sdir.is_dir():
            return []
        versions = [
            d.name for d in sdir.iterdir()
            if d.is_dir() and (d / layout.MANIFEST_FILE).exists()
        ]
        return sorted(versions, key=version_sort_key)

    def latest_version(self, series: str) -> str | None:
        versions = self.list_versions(series)
        return versions[-1] if versions else None

    def exists(self, series: str, version: str) -> bool:
        return layout.manifest_path(self._root, series, version).exists()

    def load(self, series: str, version: str) -> Manifest:
        """Load a manifest and all of its phase documents.

        Raises:
            UnknownSeriesOrVersionError: If nothing is stored for the pair.
            PhaseDocumentError: If a phase document is malformed.
        """
        path = layout.manifest_path(self._root, series, version)
        if not path.exists():
            if series not in self.list_series():
                raise UnknownSeriesOrVersionError(series, None, self.list_series())
            raise UnknownSeriesOrVersionError(series, version, self.list_versions(series))

        data: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
        base = path.parent
        phases: list[PhaseDefinition] = []
        for item in data.get("phases", []):
            doc_path = base / item["document"]
            phase = parse_phase_document(
                read_document(doc_path),
                series=series,
                version=version,
                origin=str(doc_path),
            )
            if phase.id != item["id"]:
                raise PhaseDocumentError(
                    f"{doc_path}: id '{phase.id}' does not match manifest entry '{item['id']}'"
                )
            phases.append(phase)

        manifest = Manifest(
            series=data["series"],
            version=data["version"],
            description=data.get("description", ""),
            created_at=datetime.fromisoformat(data["created_at"]),
            phases=tuple(phases),
        )
        logger.debug("Loaded manifest %s@%s (%d phases)", series, version, len(phases))
        return manifest

    def save(self, manifest: Manifest) -> Path:
        """Persist a new manifest version.

        Phase documents are written before manifest.json, so a version is
        only visible once complete.

        Raises:
            VersionConflictError: If the version already exists.
        """
        if self.exists(manifest.series, manifest.version):
            raise VersionConflictError(
                f"{manifest.series}@{manifest.version} already exists; "
                "published versions are immutable"
            )
        files = self.render_files(manifest)
        base = layout.manifest_dir(self._root, manifest.series, manifest.version)
        for rel_path, content in files.items():
            if rel_path != layout.MANIFEST_FILE:
                atomic_write_text(base / rel_path, content)
        path = layout.manifest_path(self._root, manifest.series, manifest.version)
        atomic_write_text(path, files[layout.MANIFEST_FILE])
        logger.info(
            "Saved manifest %s@%s (%d phases) to %s",
            manifest.series, manifest.version, len(manifest.phases), path.parent,
        )
        return path

    def render_files(self, manifest: Manifest) -> dict[str, str]:
        """Serialize a manifest into its directory files (relative path -> text)."""
        files: dict[str, str] = {}
        entries = []
        for phase in manifest.phases:
            rel = f"{layout.PHASES_DIR}/{phase.id}.md"
            files[rel] = render_phase_document(phase, manifest.series, manifest.version)
            entries.append({"id": phase.id, "document": rel})
        files[layout.MANIFEST_FILE] = json.dumps(
            {
                "series": manifest.series,
                "version": manifest.version,
                "description": manifest.description,
                "created_at": manifest.created_at.isoformat(),
                "phases": entries,
            },
            indent=2,
        ) + "\n"
        return files

    def export_files(self, series: str, version: str) -> dict[str, bytes]:
        """Raw bytes of every stored file of a version (for archival)."""
        base = layout.manifest_dir(self._root, series, version)
        if not (base / layout.MANIFEST_FILE).exists():
            raise UnknownSeriesOrVersionError(series, version, self.list_versions(series))
        return {
            p.relative_to(base).as_posix(): p.read_bytes()
            for p in sorted(base.rglob("*"))
            if p.is_file() and not p.name.startswith(".")
        }
