# src/engine/diff.py — v1
"""Diff engine — classify phases between two definition sets.

Every id in old | new receives exactly one label. Equality compares the
full content key of a phase (type, inputs, dependency set, produces,
manual-extension pattern, source and instruction text); any difference
is a modification.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from phasekit.core.models import PhaseDefinition


class DiffLabel(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class PhaseDiff:
    """Classification of phase ids, each list sorted by id."""

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    labels: dict[str, DiffLabel] = field(default_factory=dict)

    @property
    def changed(self) -> list[str]:
        """Ids that need regeneration: added and modified."""
        return sorted(self.added + self.modified)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)

    def summary(self) -> dict[str, list[str]]:
        return {
            "added": list(self.added),
            "removed": list(self.removed),
            "modified": list(self.modified),
            "unchanged": list(self.unchanged),
        }


def diff_phases(
    old: Iterable[PhaseDefinition], new: Iterable[PhaseDefinition]
) -> PhaseDiff:
    """Classify every phase id of old and new.

    Pure and deterministic; inputs may come in any order.
    """
    old_map = {p.id: p for p in old}
    new_map = {p.id: p for p in new}

    labels: dict[str, DiffLabel] = {}
    for pid in sorted(old_map.keys() | new_map.keys()):
        if pid not in old_map:
            labels[pid] = DiffLabel.ADDED
        elif pid not in new_map:
            labels[pid] = DiffLabel.REMOVED
        elif old_map[pid].content_key() != new_map[pid].content_key():
            labels[pid] = DiffLabel.MODIFIED
        else:
            labels[pid] = DiffLabel.UNCHANGED

    def _with(label: DiffLabel) -> list[str]:
        return [pid for pid, lbl in labels.items() if lbl == label]

    return PhaseDiff(
        added=_with(DiffLabel.ADDED),
        removed=_with(DiffLabel.REMOVED),
        modified=_with(DiffLabel.MODIFIED),
        unchanged=_with(DiffLabel.UNCHANGED),
        labels=labels,
    )
