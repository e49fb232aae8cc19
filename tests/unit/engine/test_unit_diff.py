# tests/unit/engine/test_unit_diff.py — v1
"""Tests for engine/diff.py."""

from __future__ import annotations

from helpers import make_phase
from phasekit.core.models import PhaseInput, PhaseType
from phasekit.engine.diff import DiffLabel, diff_phases


class TestDiffPhases:
    def test_labels(self):
        old = [make_phase("A"), make_phase("B"), make_phase("C")]
        new = [make_phase("A"), make_phase("B", content="Changed.\n"), make_phase("D")]
        diff = diff_phases(old, new)
        assert diff.added == ["D"]
        assert diff.removed == ["C"]
        assert diff.modified == ["B"]
        assert diff.unchanged == ["A"]
        assert diff.labels == {
            "A": DiffLabel.UNCHANGED,
            "B": DiffLabel.MODIFIED,
            "C": DiffLabel.REMOVED,
            "D": DiffLabel.ADDED,
        }
        assert diff.changed == ["B", "D"]
        assert not diff.is_empty

    def test_order_independent(self):
        old = [make_phase("A"), make_phase("B", ("A",))]
        assert diff_phases(old, list(reversed(old))).is_empty

    def test_dependency_order_not_a_change(self):
        a = make_phase("C", ("A", "B"))
        b = make_phase("C", ("B", "A"))
        assert diff_phases([a], [b]).unchanged == ["C"]

    def test_metadata_changes_are_modifications(self):
        base = make_phase("A")
        variants = [
            make_phase("A", type=PhaseType.VERIFICATION),
            make_phase("A", inputs=(PhaseInput(name="x"),)),
            make_phase("A", ("Z",)),
            make_phase("A", produces=("a.py",)),
            make_phase("A", manual_extension="*.custom.py"),
            make_phase("A", source="specs/a.md"),
        ]
        for variant in variants:
            assert diff_phases([base], [variant]).modified == ["A"]

    def test_empty(self):
        diff = diff_phases([], [])
        assert diff.is_empty
        assert diff.summary() == {"added": [], "removed": [], "modified": [], "unchanged": []}
