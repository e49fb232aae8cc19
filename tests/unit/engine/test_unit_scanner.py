# tests/unit/engine/test_unit_scanner.py — v1
"""Tests for engine/scanner.py — header-based artifact discovery."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from helpers import make_manifest, make_phase
from phasekit.core.models import ProvenanceFields
from phasekit.engine.scanner import ArtifactScanner
from phasekit.provenance.codec import inject_header

TS = datetime(2026, 10, 17, tzinfo=timezone.utc)


def _write(root: Path, rel: str, phase_id: str, version: str = "1.0.0", series: str = "web"):
    fields = ProvenanceFields(
        series=series, version=version, phase_id=phase_id, agent="a", timestamp=TS
    )
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(inject_header("body\n", fields, rel), encoding="utf-8")


class TestArtifactScanner:
    def test_maps_phases(self, tmp_path):
        _write(tmp_path, "src/a.py", "A")
        _write(tmp_path, "src/a2.ts", "A")
        _write(tmp_path, "src/b.sql", "B")
        _write(tmp_path, "src/old.py", "B", version="0.9.0")
        _write(tmp_path, "src/api.py", "A", series="api")
        (tmp_path / "README.md").write_text("plain\n", encoding="utf-8")

        result = ArtifactScanner(tmp_path).scan(Path("."), "web", "1.0.0")
        assert result.by_phase == {"A": ["src/a.py", "src/a2.ts"], "B": ["src/b.sql"]}
        assert result.other_versions == {"0.9.0": 1}
        assert result.phase_ids == ["A", "B"]
        assert result.total_artifacts == 3
        assert result.files_scanned == 6
        assert [(a.path, a.provenance.phase_id) for a in result.artifacts] == [
            ("src/a.py", "A"), ("src/a2.ts", "A"), ("src/b.sql", "B"),
        ]
        assert all(a.content is None and a.provenance.agent == "a" for a in result.artifacts)

    def test_excluded_dirs_and_state_dir(self, tmp_path):
        _write(tmp_path, "node_modules/x.js", "A")
        _write(tmp_path, ".phasekit/archive/files/a.py", "A")
        _write(tmp_path, "src/a.py", "A")
        result = ArtifactScanner(tmp_path).scan(tmp_path, "web", "1.0.0")
        assert result.by_phase == {"A": ["src/a.py"]}

    def test_manual_extensions_skipped(self, tmp_path):
        _write(tmp_path, "src/a.py", "A")
        _write(tmp_path, "src/a.custom.py", "A")
        manifest = make_manifest([make_phase("A", manual_extension="*.custom.py")])
        result = ArtifactScanner(tmp_path).scan(Path("src"), "web", "1.0.0", [manifest])
        assert result.by_phase == {"A": ["src/a.py"]}
        assert result.manual_skipped == ["src/a.custom.py"]

    def test_binary_files_ignored(self, tmp_path):
        (tmp_path / "blob.bin").write_bytes(b"# @phasekit:begin\n\0\0")
        assert ArtifactScanner(tmp_path).scan(tmp_path, "web", "1.0.0").by_phase == {}

    def test_scope_validation(self, tmp_path):
        project = tmp_path / "project"
        project.mkdir()
        scanner = ArtifactScanner(project)
        with pytest.raises(ValueError, match="outside"):
            scanner.scan(tmp_path, "web", "1.0.0")
        with pytest.raises(ValueError, match="not a directory"):
            scanner.scan(Path("missing"), "web", "1.0.0")
