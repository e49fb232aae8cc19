# src/engine/migration.py — v1
"""Migration engine — regenerate only what changed between two versions.

Existing artifacts are located by their provenance headers, the old and
new manifests are diffed over the phases that actually produced files,
and only added or modified phases are run again. Unchanged artifacts are
not touched, removed phases' files are left in place with a warning and
manual-extension files are never written.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path

from phasekit.engine.diff import PhaseDiff, diff_phases
from phasekit.engine.executor import ExecutionEngine, RunOptions, RunResult
from phasekit.engine.scanner import ArtifactScanner, ScanResult
from phasekit.manifest.graph import topological_order, validate_manifest
from phasekit.manifest.selector import Selection
from phasekit.manifest.store import ManifestStore
from phasekit.tracking.execution_log import RunRecorder

logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    """Outcome of MigrationEngine.migrate()."""

    series: str
    from_version: str
    to_version: str
    scan: ScanResult
    diff: PhaseDiff
    regeneration: list[str]
    run: RunResult
    warnings: list[str] = field(default_factory=list)


class MigrationEngine:
    """Scan, diff and selectively regenerate artifacts."""

    def __init__(
        self,
        store: ManifestStore,
        engine: ExecutionEngine,
        scanner: ArtifactScanner,
    ) -> None:
        self._store = store
        self._engine = engine
        self._scanner = scanner

    async def migrate(
        self,
        series: str,
        from_version: str,
        to_version: str,
        scope: Path,
        options: RunOptions | None = None,
        recorder: RunRecorder | None = None,
    ) -> MigrationResult:
        """Bring artifacts of series@from_version up to to_version.

        Raises:
            UnknownSeriesOrVersionError: If either version is not stored.
            InvalidManifestError: If the target manifest is invalid.
        """
        old = self._store.load(series, from_version)
        new = self._store.load(series, to_version)
        validate_manifest(new)

        scan = self._scanner.scan(scope, series, from_version, manifests=(old, new))
        mapped = set(scan.by_phase)
        warnings: list[str] = []

        unknown = sorted(mapped - set(old.phase_ids))
        if unknown:
            warnings.append(
                f"Artifacts name phases absent from {series}@{from_version}: {unknown}"
            )

        old_ids = set(old.phase_ids)
        diff = diff_phases(
            [p for p in old.phases if p.id in mapped],
            [p for p in new.phases if p.id in mapped or p.id not in old_ids],
        )
        targets = set(diff.added) | set(diff.modified)
        regeneration = [pid for pid in topological_order(new) if pid in targets]

        for pid in diff.removed:
            warnings.append(
                f"Phase '{pid}' was removed in {to_version}; leaving "
                f"{scan.by_phase.get(pid, [])} in place"
            )
        for warning in warnings:
            logger.warning(warning)
        logger.info(
            "Migrating %s %s -> %s: regenerating %s (%d unchanged)",
            series, from_version, to_version, regeneration, len(diff.unchanged),
        )

        base = options or RunOptions()
        run_options = dataclasses.replace(
            base,
            fallback_versions=(from_version, *base.fallback_versions),
            allow_stubs=False,
            chain_verifications=False,
        )
        run = await self._engine.run(
            new, Selection(phase_ids=regeneration), run_options, recorder
        )

        if recorder is not None:
            recorder.detail("from_version", from_version)
            recorder.detail("to_version", to_version)
            recorder.detail("scope", str(scope))
            recorder.detail("mapped", {pid: paths for pid, paths in sorted(scan.by_phase.items())})
            recorder.detail("diff", diff.summary())
            recorder.detail("regeneration", regeneration)
            for warning in warnings:
                recorder.note(warning)

        return MigrationResult(
            series=series,
            from_version=from_version,
            to_version=to_version,
            scan=scan,
            diff=diff,
            regeneration=regeneration,
            run=run,
            warnings=warnings,
        )
