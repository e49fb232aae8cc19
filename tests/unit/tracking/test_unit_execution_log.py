# tests/unit/tracking/test_unit_execution_log.py — v1
"""Tests for tracking/execution_log.py — RunRecorder and ExecutionLog."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from phasekit.tracking.execution_log import ExecutionLog, RunRecorder
from phasekit.tracking.models import BuildResult, PhaseLogEntry, PhaseStatus

TS = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def recorder():
    rec = RunRecorder("web", "1.0.0", "execute", agent="claude", timestamp=TS)
    rec.record_phase(
        PhaseLogEntry(
            phase_id="A",
            status=PhaseStatus.SUCCESS,
            created_files=["a.py"],
            build=BuildResult(passed=True),
        )
    )
    rec.record_phase(
        PhaseLogEntry(phase_id="B", status=PhaseStatus.SUCCESS, already_satisfied=True)
    )
    rec.record_phase(
        PhaseLogEntry(
            phase_id="C",
            status=PhaseStatus.FAILED,
            modified_files=["a.py"],
            build=BuildResult(passed=False, diagnostics="boom"),
        )
    )
    rec.record_phase(PhaseLogEntry(phase_id="D", status=PhaseStatus.SKIPPED))
    return rec


class TestRunRecorder:
    def test_counts(self, recorder):
        assert recorder.counts() == {
            "success": 2,
            "failed": 1,
            "skipped": 1,
            "already_satisfied": 1,
        }

    def test_build_record(self, recorder):
        recorder.note("free text")
        recorder.detail("diff", {"added": ["X"]})
        record = recorder.build_record("partial")
        assert record.phases_run == ["A", "B", "C", "D"]
        assert record.created_files == ["a.py"]
        assert record.modified_files == ["a.py"]
        assert record.build_passed is False
        assert record.status == "partial"
        assert record.notes == ["free text"]
        assert record.details == {"diff": {"added": ["X"]}}
        assert record.results["B"].already_satisfied is True

    def test_no_build_results(self):
        rec = RunRecorder("web", "1.0.0", "validate", timestamp=TS)
        assert rec.build_record("succeeded").build_passed is None


class TestExecutionLog:
    def test_append_and_read(self, tmp_path, recorder):
        log = ExecutionLog(tmp_path / "logs")
        path = log.append(recorder.build_record("partial"))
        assert path == tmp_path / "logs" / "2026-10-17" / "120000000000_web_execute.json"
        records = log.records()
        assert len(records) == 1
        assert records[0].results["C"].build.diagnostics == "boom"

    def test_never_overwrites(self, tmp_path, recorder):
        log = ExecutionLog(tmp_path / "logs")
        first = log.append(recorder.build_record("partial"))
        second = log.append(recorder.build_record("failed"))
        assert first != second
        assert second.name == "120000000000_web_execute-1.json"
        assert sorted(r.status for r in log.records()) == ["failed", "partial"]

    def test_independent_writers_never_clobber(self, tmp_path, recorder):
        first_log = ExecutionLog(tmp_path / "logs")
        second_log = ExecutionLog(tmp_path / "logs")
        foreign = tmp_path / "logs" / "2026-10-17" / "120000000000_web_execute.json"
        foreign.parent.mkdir(parents=True)
        foreign.write_bytes(b"written by another process")

        a = first_log.append(recorder.build_record("partial"))
        b = second_log.append(recorder.build_record("failed"))
        assert [a.name, b.name] == [
            "120000000000_web_execute-1.json",
            "120000000000_web_execute-2.json",
        ]
        assert foreign.read_bytes() == b"written by another process"
        assert sorted(r.status for r in first_log.records()) == ["failed", "partial"]

    def test_filters(self, tmp_path):
        log = ExecutionLog(tmp_path / "logs")
        log.append(RunRecorder("web", "1.0.0", "execute", timestamp=TS).build_record("succeeded"))
        log.append(RunRecorder("api", "1.0.0", "merge", timestamp=TS).build_record("succeeded"))
        assert [r.series for r in log.records(series="api")] == ["api"]
        assert [r.command for r in log.records(command="execute")] == ["execute"]

    def test_missing_root(self, tmp_path):
        assert ExecutionLog(tmp_path / "none").records() == []
