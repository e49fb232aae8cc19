# src/storage/local_writer.py — v2
"""Local filesystem writer with atomic replacement.

A write goes to a temporary file in the target directory and is moved into
place with os.replace, so readers observe either the old or the new content
and never a partial file.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from phasekit.storage.base_output_writer import BaseOutputWriter


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write data to path atomically (same-directory temp file + rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.tmp.", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        if path.exists():
            os.chmod(tmp_path, path.stat().st_mode & 0o7777)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def atomic_write_text(path: Path, content: str) -> None:
    atomic_write_bytes(path, content.encode("utf-8"))


def _to_bytes(content: bytes | str) -> bytes:
    return content if isinstance(content, bytes) else content.encode("utf-8")


class LocalWriter(BaseOutputWriter):
    """Write artifacts to the local filesystem."""

    def __init__(self, base_path: str | Path | None = None) -> None:
        """Initialize with optional base path.

        Args:
            base_path: Root directory for all writes. If None, paths are absolute.
        """
        self._base = Path(base_path) if base_path else None

    @property
    def base_path(self) -> Path | None:
        return self._base

    def _resolve(self, path: str) -> Path:
        """Resolve a path relative to base_path."""
        if self._base is not None:
            return self._base / path
        return Path(path)

    async def write(self, path: str, content: bytes | str) -> None:
        """Atomically replace a local file."""
        atomic_write_bytes(self._resolve(path), _to_bytes(content))

    async def write_if_absent(self, path: str, content: bytes | str) -> bool:
        """Create a file exclusively; an existing file is left untouched."""
        p = self._resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        try:
            with p.open("xb") as f:
                f.write(_to_bytes(content))
        except FileExistsError:
            return False
        return True

    async def read(self, path: str) -> bytes:
        """Read content from a local file path."""
        return self._resolve(path).read_bytes()

    async def exists(self, path: str) -> bool:
        """Check if a local path exists."""
        return self._resolve(path).exists()

    async def list_dir(self, path: str) -> list[str]:
        """List directory contents."""
        p = self._resolve(path)
        if not p.is_dir():
            return []
        return [entry.name for entry in sorted(p.iterdir())]
