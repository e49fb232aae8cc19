# tests/unit/storage/test_unit_archive.py — v1
"""Tests for storage/archive.py — append-only archival of prior content."""

from __future__ import annotations

import pytest

from helpers import StepClock
from phasekit.storage.archive import ArchiveStore


@pytest.fixture
def archive(tmp_path):
    return ArchiveStore(tmp_path / "archive", clock=StepClock())


class TestArchiveFile:
    @pytest.mark.asyncio
    async def test_archive_preserves_content(self, archive):
        entry = await archive.archive_file("src/a.py", b"v1", "web", "1.0.0", "P01")
        assert entry.original_path == "src/a.py"
        assert entry.kind == "artifact"
        assert entry.phase_id == "P01"
        assert archive.read(entry) == b"v1"
        assert entry.archive_path.startswith("files/src/a.py/")

    @pytest.mark.asyncio
    async def test_successive_versions_ordered(self, archive):
        for content in (b"v1", b"v2", b"v3"):
            await archive.archive_file("src/a.py", content, "web", "1.0.0", "P01")
        entries = archive.entries("src/a.py")
        assert [archive.read(e) for e in entries] == [b"v1", b"v2", b"v3"]
        assert [e.timestamp for e in entries] == sorted(e.timestamp for e in entries)
        assert len({e.archive_path for e in entries}) == 3

    @pytest.mark.asyncio
    async def test_same_timestamp_gets_suffix(self, tmp_path):
        fixed = StepClock()
        moment = fixed()
        archive = ArchiveStore(tmp_path / "archive", clock=lambda: moment)
        first = await archive.archive_file("a.txt", b"1", "web", "1.0.0")
        second = await archive.archive_file("a.txt", b"2", "web", "1.0.0")
        assert second.archive_path == first.archive_path + "-1"
        assert archive.read(first) == b"1"
        assert archive.read(second) == b"2"

    @pytest.mark.asyncio
    async def test_entries_filter(self, archive):
        await archive.archive_file("a.txt", b"a", "web", "1.0.0")
        await archive.archive_file("b.txt", b"b", "web", "1.0.0")
        assert [e.original_path for e in archive.entries()] == ["a.txt", "b.txt"]
        assert len(archive.entries("b.txt")) == 1

    def test_empty_archive(self, archive):
        assert archive.entries() == []


class TestArchiveManifest:
    @pytest.mark.asyncio
    async def test_archive_manifest_files(self, archive):
        files = {"manifest.json": b"{}", "phases/A.md": b"---\nid: A\n---\n"}
        entry = await archive.archive_manifest("web", "1.0.0", files)
        assert entry.kind == "manifest"
        assert entry.original_path == "web/1.0.0/manifest.json"
        assert entry.archive_path.startswith("manifests/web/1.0.0/")
        assert archive.read_manifest_files(entry) == files
