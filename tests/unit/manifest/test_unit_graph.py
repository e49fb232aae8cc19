# tests/unit/manifest/test_unit_graph.py — v1
"""Tests for manifest/graph.py — validation, stable order, levels."""

from __future__ import annotations

import pytest

from helpers import make_manifest, make_phase
from phasekit.core.errors import (
    CycleError,
    DanglingDependencyError,
    DuplicatePhaseError,
    OverlappingProducesError,
)
from phasekit.manifest.graph import (
    ancestors,
    build_plan,
    descendants,
    execution_levels,
    topological_order,
    validate_manifest,
)


class TestValidateManifest:
    def test_valid(self, three_phase_manifest):
        validate_manifest(three_phase_manifest)

    def test_cycle_names_members(self):
        manifest = make_manifest(
            [make_phase("A", ("C",)), make_phase("B", ("A",)), make_phase("C", ("B",))]
        )
        with pytest.raises(CycleError) as exc_info:
            validate_manifest(manifest)
        assert set(exc_info.value.phase_ids) == {"A", "B", "C"}

    def test_self_cycle(self):
        with pytest.raises(CycleError):
            validate_manifest(make_manifest([make_phase("A", ("A",))]))

    def test_dangling_dependency(self):
        manifest = make_manifest([make_phase("A"), make_phase("B", ("Z",))])
        with pytest.raises(DanglingDependencyError) as exc_info:
            validate_manifest(manifest)
        assert exc_info.value.phase_ids == ["B", "Z"]
        assert "'Z'" in str(exc_info.value)

    def test_duplicate_ids(self):
        manifest = make_manifest([make_phase("A"), make_phase("A", content="other")])
        with pytest.raises(DuplicatePhaseError):
            validate_manifest(manifest)

    def test_overlapping_produces_unrelated(self):
        manifest = make_manifest(
            [make_phase("A", produces=("x.py",)), make_phase("B", produces=("x.py",))]
        )
        with pytest.raises(OverlappingProducesError):
            validate_manifest(manifest)

    def test_overlapping_produces_checked_against_every_owner(self):
        manifest = make_manifest(
            [
                make_phase("A", produces=("x.py",)),
                make_phase("B", ("A", "C"), produces=("x.py",)),
                make_phase("C", produces=("x.py",)),
            ]
        )
        with pytest.raises(OverlappingProducesError) as exc_info:
            validate_manifest(manifest)
        assert exc_info.value.phase_ids == ["A", "C"]

    def test_overlapping_produces_along_dependency(self):
        manifest = make_manifest(
            [make_phase("A", produces=("x.py",)), make_phase("B", ("A",), produces=("x.py",))]
        )
        validate_manifest(manifest)


class TestTopologicalOrder:
    def test_declaration_order_breaks_ties(self):
        manifest = make_manifest(
            [make_phase("C"), make_phase("A"), make_phase("B", ("C",))]
        )
        assert topological_order(manifest) == ["C", "A", "B"]

    def test_dependency_before_dependent(self):
        manifest = make_manifest(
            [make_phase("B", ("A",)), make_phase("A"), make_phase("D", ("B", "C")), make_phase("C")]
        )
        order = topological_order(manifest)
        assert order == ["A", "B", "C", "D"]
        for phase in manifest.phases:
            for dep in phase.depends_on:
                assert order.index(dep) < order.index(phase.id)

    def test_deterministic(self, three_phase_manifest):
        assert topological_order(three_phase_manifest) == topological_order(three_phase_manifest)

    def test_empty(self):
        assert topological_order(make_manifest([])) == []


class TestPlan:
    def test_levels(self):
        manifest = make_manifest(
            [make_phase("A"), make_phase("B"), make_phase("C", ("A", "B")), make_phase("D", ("C",))]
        )
        plan = build_plan(manifest)
        assert plan.levels == [["A", "B"], ["C"], ["D"]]
        assert plan.total_phases == 4
        assert execution_levels(manifest) == plan.levels

    def test_cycle_detected_by_plan(self):
        with pytest.raises(CycleError):
            build_plan(make_manifest([make_phase("A", ("B",)), make_phase("B", ("A",))]))

    def test_ancestors_and_descendants(self, three_phase_manifest):
        assert ancestors(three_phase_manifest, "V") == {"A", "B"}
        assert descendants(three_phase_manifest, "A") == {"B", "V"}
