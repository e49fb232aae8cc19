# src/engine/evolution.py — v1
"""Evolution engine — merge a regenerated phase set into a new manifest version.

The old version stays readable in the manifest store and is additionally
archived as a whole before the new version is published.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from phasekit.core.errors import InvalidManifestError, VersionConflictError
from phasekit.core.models import ArchiveEntry, Manifest, PhaseDefinition
from phasekit.core.versioning import BumpKind, bump_version, classify_bump, parse_version
from phasekit.engine.diff import PhaseDiff, diff_phases
from phasekit.engine.executor import ExecutionEngine, RunOptions, RunResult
from phasekit.manifest.graph import validate_manifest
from phasekit.manifest.selector import select_phases
from phasekit.manifest.store import ManifestStore
from phasekit.storage.archive import ArchiveStore
from phasekit.tracking.execution_log import RunRecorder

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Outcome of EvolutionEngine.merge()."""

    series: str
    old_version: str
    new_version: str
    bump: BumpKind | None
    diff: PhaseDiff
    manifest: Manifest
    archive_entry: ArchiveEntry
    dry_run: RunResult | None = None


class EvolutionEngine:
    """Diff, bump, archive and persist manifest versions."""

    def __init__(
        self,
        store: ManifestStore,
        archive: ArchiveStore,
        engine: ExecutionEngine | None = None,
    ) -> None:
        self._store = store
        self._archive = archive
        self._engine = engine

    def plan_version(
        self, series: str, old_version: str, diff: PhaseDiff, version_override: str | None
    ) -> tuple[str, BumpKind | None]:
        """Version the merged manifest will get.

        Raises:
            VersionConflictError: If the version is already published.
            ValueError: If the override is not MAJOR.MINOR.PATCH.
        """
        if version_override:
            parse_version(version_override)
            new_version, bump = version_override, None
        else:
            bump = classify_bump(diff.added, diff.removed)
            new_version = bump_version(old_version, bump)
        if self._store.exists(series, new_version):
            raise VersionConflictError(
                f"{series}@{new_version} already exists; choose another version"
            )
        return new_version, bump

    async def merge(
        self,
        series: str,
        old_version: str,
        new_phases: Sequence[PhaseDefinition],
        version_override: str | None = None,
        dry_run_check: bool = True,
        description: str | None = None,
        recorder: RunRecorder | None = None,
    ) -> MergeResult:
        """Publish a new manifest version built from new_phases.

        Unchanged phases are copied from the old version, added and
        modified ones come from new_phases, removed ones are dropped. The
        phase order follows new_phases.

        Raises:
            UnknownSeriesOrVersionError: If old_version is not stored.
            VersionConflictError: If the target version already exists.
            InvalidManifestError: If the merged manifest is invalid or the
                dry run reports a failing phase.
        """
        old = self._store.load(series, old_version)
        diff = diff_phases(old.phases, new_phases)
        new_version, bump = self.plan_version(series, old_version, diff, version_override)

        old_map = old.phase_map()
        phases = tuple(
            old_map[p.id] if p.id in diff.unchanged else p for p in new_phases
        )
        manifest = Manifest(
            series=series,
            version=new_version,
            phases=phases,
            description=old.description if description is None else description,
        )
        validate_manifest(manifest)
        logger.info(
            "Merging %s@%s -> %s: +%d ~%d -%d",
            series, old_version, new_version,
            len(diff.added), len(diff.modified), len(diff.removed),
        )

        dry_run: RunResult | None = None
        if dry_run_check and self._engine is not None:
            dry_run = await self._engine.run(
                manifest,
                select_phases(manifest),
                RunOptions(
                    dry_run=True,
                    continue_on_error=True,
                    fallback_versions=(old_version,),
                ),
            )
            if dry_run.failed:
                raise InvalidManifestError(
                    f"Dry run of {series}@{new_version} failed for phases {dry_run.failed}",
                    dry_run.failed,
                )

        archive_entry = await self._archive.archive_manifest(
            series, old_version, self._store.export_files(series, old_version)
        )
        self._store.save(manifest)

        if recorder is not None:
            recorder.version = new_version
            recorder.detail("old_version", old_version)
            recorder.detail("new_version", new_version)
            recorder.detail("bump", bump.value if bump else "override")
            recorder.detail("diff", diff.summary())
            recorder.detail("archived_manifest", archive_entry.archive_path)
            if dry_run is not None:
                recorder.detail("dry_run", dry_run.counts())

        return MergeResult(
            series=series,
            old_version=old_version,
            new_version=new_version,
            bump=bump,
            diff=diff,
            manifest=manifest,
            archive_entry=archive_entry,
            dry_run=dry_run,
        )
