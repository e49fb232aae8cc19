# src/manifest/selector.py — v1
"""Phase selector — compute the ordered subset of phases to run.

Filters are applied in this order: explicit phase, from/to range over the
topological order, only-set, skip-set. The result is always re-sorted in
topological order. Dependencies excluded by the filters are reported as
warnings and never added back; an unmet dependency is detected at run time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from phasekit.core.errors import SelectionError
from phasekit.core.models import Manifest
from phasekit.manifest.graph import topological_order

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionSpec:
    """User filters over the phases of a manifest."""

    phase: str | None = None
    from_phase: str | None = None
    to_phase: str | None = None
    only: frozenset[str] = frozenset()
    skip: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return (
            self.phase is None
            and self.from_phase is None
            and self.to_phase is None
            and not self.only
            and not self.skip
        )


@dataclass
class Selection:
    """Ordered phase ids to run plus dependency warnings."""

    phase_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    missing_dependencies: dict[str, list[str]] = field(default_factory=dict)

    def __contains__(self, phase_id: str) -> bool:
        return phase_id in self.phase_ids


def select_phases(manifest: Manifest, spec: SelectionSpec | None = None) -> Selection:
    """Apply a SelectionSpec to a validated manifest.

    Raises:
        SelectionError: If the selection names a phase absent from the manifest
            or the from/to range is inverted.
    """
    spec = spec or SelectionSpec()
    order = topological_order(manifest)
    known = set(order)

    named = {spec.phase, spec.from_phase, spec.to_phase} | set(spec.only) | set(spec.skip)
    unknown = sorted(n for n in named if n is not None and n not in known)
    if unknown:
        raise SelectionError(
            f"Unknown phases for {manifest.series}@{manifest.version}: {unknown}. "
            f"Known: {order}"
        )

    candidates = list(order)
    if spec.phase is not None:
        candidates = [spec.phase]

    if spec.from_phase is not None or spec.to_phase is not None:
        start = order.index(spec.from_phase) if spec.from_phase else 0
        end = order.index(spec.to_phase) if spec.to_phase else len(order) - 1
        if start > end:
            raise SelectionError(
                f"Range start '{spec.from_phase}' comes after end '{spec.to_phase}'"
            )
        window = set(order[start : end + 1])
        candidates = [pid for pid in candidates if pid in window]

    if spec.only:
        candidates = [pid for pid in candidates if pid in spec.only]
    if spec.skip:
        candidates = [pid for pid in candidates if pid not in spec.skip]

    chosen = set(candidates)
    selection = Selection(phase_ids=[pid for pid in order if pid in chosen])

    for pid in selection.phase_ids:
        missing = [d for d in manifest.get_or_raise(pid).depends_on if d not in chosen]
        if missing:
            selection.missing_dependencies[pid] = missing
            selection.warnings.append(
                f"Phase '{pid}' depends on {missing} which are not selected; "
                "their outputs must already exist"
            )

    for warning in selection.warnings:
        logger.warning(warning)
    logger.info(
        "Selected %d/%d phases of %s@%s: %s",
        len(selection.phase_ids),
        len(order),
        manifest.series,
        manifest.version,
        selection.phase_ids,
    )
    return selection
