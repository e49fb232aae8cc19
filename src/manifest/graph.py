# src/manifest/graph.py — v1
"""Manifest graph — validation and topological ordering of phases.

Produces a stable topological order (declaration order breaks ties) and
dependency levels for optional concurrent execution. Detects cycles,
dangling dependencies, duplicate ids and overlapping produced paths.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field

import networkx as nx

from phasekit.core.errors import (
    CycleError,
    DanglingDependencyError,
    DuplicatePhaseError,
    OverlappingProducesError,
)
from phasekit.core.models import Manifest

logger = logging.getLogger(__name__)


@dataclass
class ExecutionPlan:
    """Ordered execution plan for a manifest.

    levels groups phases whose dependencies are resolved by earlier levels;
    phases in the same level have no ordering constraint between them.
    """

    order: list[str] = field(default_factory=list)
    levels: list[list[str]] = field(default_factory=list)

    @property
    def total_phases(self) -> int:
        return len(self.order)


def build_graph(manifest: Manifest) -> nx.DiGraph:
    """Build a directed graph with an edge dependency -> dependent.

    Dependencies on ids outside the manifest are dropped; use
    validate_manifest() to reject them first.
    """
    graph = nx.DiGraph()
    for index, phase in enumerate(manifest.phases):
        graph.add_node(phase.id, index=index)
    for phase in manifest.phases:
        for dep in phase.depends_on:
            if dep in graph:
                graph.add_edge(dep, phase.id)
    return graph


def validate_manifest(manifest: Manifest) -> None:
    """Check that a manifest is a well-formed phase DAG.

    Raises:
        DuplicatePhaseError: If two phases share an id.
        DanglingDependencyError: If a dependency is not in the manifest.
        CycleError: If dependencies form a cycle.
        OverlappingProducesError: If unrelated phases declare the same path.
    """
    seen: set[str] = set()
    duplicates = []
    for phase_id in manifest.phase_ids:
        if phase_id in seen:
            duplicates.append(phase_id)
        seen.add(phase_id)
    if duplicates:
        raise DuplicatePhaseError(
            f"Duplicate phase ids in {manifest.series}@{manifest.version}: {duplicates}",
            duplicates,
        )

    for phase in manifest.phases:
        for dep in phase.depends_on:
            if dep not in seen:
                raise DanglingDependencyError(
                    f"Phase '{phase.id}' depends on '{dep}' which is not in "
                    f"{manifest.series}@{manifest.version}",
                    [phase.id, dep],
                )

    graph = build_graph(manifest)
    try:
        cycle = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:
        cycle = None
    if cycle:
        members = [edge[0] for edge in cycle]
        raise CycleError(f"Cycle detected involving phases: {members}", members)

    _check_produces(manifest, graph)


def _check_produces(manifest: Manifest, graph: nx.DiGraph) -> None:
    """Two phases may share a produced path only along a dependency path."""
    owners: dict[str, list[str]] = {}
    for phase in manifest.phases:
        for path in phase.produces:
            for other in owners.get(path, []):
                if not (
                    nx.has_path(graph, other, phase.id)
                    or nx.has_path(graph, phase.id, other)
                ):
                    raise OverlappingProducesError(
                        f"Phases '{other}' and '{phase.id}' both produce '{path}' "
                        "without a dependency between them",
                        [other, phase.id],
                    )
            owners.setdefault(path, []).append(phase.id)


def topological_order(manifest: Manifest) -> list[str]:
    """Return phase ids in dependency order.

    Kahn's algorithm with a priority queue keyed on declaration index, so
    among phases with no unresolved constraint the earliest declared wins.
    Assumes the manifest passed validate_manifest().
    """
    return build_plan(manifest).order


def execution_levels(manifest: Manifest) -> list[list[str]]:
    """Group phase ids into dependency levels, each in declaration order."""
    return build_plan(manifest).levels


def build_plan(manifest: Manifest) -> ExecutionPlan:
    """Compute the stable order and dependency levels of a manifest."""
    if not manifest.phases:
        return ExecutionPlan()

    index = {p.id: i for i, p in enumerate(manifest.phases)}
    in_degree: dict[str, int] = {p.id: 0 for p in manifest.phases}
    dependents: dict[str, list[str]] = {p.id: [] for p in manifest.phases}
    level_of: dict[str, int] = {}

    for phase in manifest.phases:
        for dep in phase.depends_on:
            if dep in in_degree:
                dependents[dep].append(phase.id)
                in_degree[phase.id] += 1

    heap = [(index[pid], pid) for pid, d in in_degree.items() if d == 0]
    heapq.heapify(heap)
    for _, pid in heap:
        level_of[pid] = 0

    order: list[str] = []
    while heap:
        _, pid = heapq.heappop(heap)
        order.append(pid)
        for dependent in dependents[pid]:
            level_of[dependent] = max(level_of.get(dependent, 0), level_of[pid] + 1)
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(heap, (index[dependent], dependent))

    if len(order) != len(in_degree):
        remaining = [pid for pid, d in in_degree.items() if d > 0]
        raise CycleError(f"Cycle detected involving phases: {remaining}", remaining)

    levels: list[list[str]] = [[] for _ in range(max(level_of.values()) + 1)]
    for pid in order:
        levels[level_of[pid]].append(pid)

    plan = ExecutionPlan(order=order, levels=levels)
    logger.debug(
        "Plan for %s@%s: %d phases in %d levels -> %s",
        manifest.series,
        manifest.version,
        plan.total_phases,
        len(plan.levels),
        plan.order,
    )
    return plan


def ancestors(manifest: Manifest, phase_id: str) -> set[str]:
    """All phases phase_id transitively depends on."""
    return nx.ancestors(build_graph(manifest), phase_id)


def descendants(manifest: Manifest, phase_id: str) -> set[str]:
    """All phases that transitively depend on phase_id."""
    return nx.descendants(build_graph(manifest), phase_id)
