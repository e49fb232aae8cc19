# src/storage/layout.py — v1
"""On-disk layout of manifests, archive, execution logs and phase state.

All paths hang off directories resolved by Settings; the functions here
only encode naming conventions.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path


DEFAULT_STATE_DIR = ".phasekit"

# Under the manifests directory
MANIFEST_FILE = "manifest.json"
PHASES_DIR = "phases"

# Under the archive directory
ARCHIVE_FILES_DIR = "files"
ARCHIVE_MANIFESTS_DIR = "manifests"
ARCHIVE_INDEX_FILE = "index.jsonl"

# Under the state directory
PHASE_STATE_DIR = "phase_state"
PHASE_STATE_DB = "phase_state.db"


def timestamp_key(ts: datetime) -> str:
    """Sortable UTC timestamp with microseconds: 20261017T101500123456Z."""
    return ts.strftime("%Y%m%dT%H%M%S%fZ")


# --- Manifests ---

def series_dir(manifests_root: Path, series: str) -> Path:
    return manifests_root / series


def manifest_dir(manifests_root: Path, series: str, version: str) -> Path:
    return series_dir(manifests_root, series) / version


def manifest_path(manifests_root: Path, series: str, version: str) -> Path:
    return manifest_dir(manifests_root, series, version) / MANIFEST_FILE


def phases_dir(manifests_root: Path, series: str, version: str) -> Path:
    return manifest_dir(manifests_root, series, version) / PHASES_DIR


def phase_document_path(
    manifests_root: Path, series: str, version: str, phase_id: str
) -> Path:
    return phases_dir(manifests_root, series, version) / f"{phase_id}.md"


# --- Archive ---

def archive_index_path(archive_root: Path) -> Path:
    return archive_root / ARCHIVE_INDEX_FILE


def archived_file_path(archive_root: Path, relative_path: str, ts: datetime) -> Path:
    """Archive slot for one version of a project file.

    Each original path gets its own directory; successive archivals sort
    by timestamp inside it.
    """
    return archive_root / ARCHIVE_FILES_DIR / relative_path / timestamp_key(ts)


def archived_manifest_dir(
    archive_root: Path, series: str, version: str, ts: datetime
) -> Path:
    return archive_root / ARCHIVE_MANIFESTS_DIR / series / version / timestamp_key(ts)


# --- Execution log ---

def log_record_path(logs_root: Path, ts: datetime, series: str, command: str) -> Path:
    """One JSON file per command run, grouped by day."""
    day = ts.strftime("%Y-%m-%d")
    return logs_root / day / f"{ts.strftime('%H%M%S%f')}_{series}_{command}.json"


# --- Phase state ---

def phase_state_path(state_root: Path, series: str, version: str, phase_id: str) -> Path:
    return state_root / PHASE_STATE_DIR / series / version / f"{phase_id}.json"


def phase_state_db_path(state_root: Path) -> Path:
    return state_root / PHASE_STATE_DB
