# tests/unit/core/test_unit_errors.py — v1
"""Tests for core/errors.py — messages and structured attributes."""

from __future__ import annotations

from phasekit.core.errors import (
    AgentFailureError,
    AgentTimeoutError,
    CycleError,
    DependencyUnmetError,
    InputResolutionError,
    InvalidManifestError,
    PhaseExecutionError,
    PhaseKitError,
    UnknownSeriesOrVersionError,
)


class TestErrors:
    def test_unknown_version_lists_known(self):
        err = UnknownSeriesOrVersionError("web", "9.9.9", ["1.0.0", "1.1.0"])
        assert "9.9.9" in str(err)
        assert "1.0.0, 1.1.0" in str(err)
        assert err.known == ["1.0.0", "1.1.0"]

    def test_unknown_series(self):
        err = UnknownSeriesOrVersionError("api", None, [])
        assert "series 'api'" in str(err)
        assert "none" in str(err)

    def test_cycle_is_invalid_manifest(self):
        err = CycleError("cycle", ["A", "B"])
        assert isinstance(err, InvalidManifestError)
        assert isinstance(err, PhaseKitError)
        assert err.phase_ids == ["A", "B"]

    def test_phase_errors_carry_phase_id(self):
        err = InputResolutionError("P01", "module")
        assert isinstance(err, PhaseExecutionError)
        assert err.phase_id == "P01"
        assert err.input_name == "module"
        assert "module" in str(err)

    def test_dependency_unmet(self):
        err = DependencyUnmetError("V", ["A"])
        assert err.missing == ["A"]
        assert "A" in str(err)

    def test_timeout_is_agent_failure(self):
        err = AgentTimeoutError("P01", "claude", 30)
        assert isinstance(err, AgentFailureError)
        assert err.agent == "claude"
        assert "30s" in str(err)
