# src/api/facade.py — v2
"""Public API facade — execute, validate, merge and migrate.

Usage:
    from phasekit.api.facade import execute
    result = await execute("web", "1.0.0", SelectionSpec(from_phase="P02"))

Every command writes exactly one execution log record, also when it
fails; fatal errors are re-raised after the record is written.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from phasekit.agents.agent_factory import create_agent_backend
from phasekit.agents.base_backend import BaseAgentBackend
from phasekit.api.models import CommandResult, CommandStatus, ValidationReport
from phasekit.build.base_validator import BaseBuildValidator
from phasekit.build.validator_factory import create_build_validator
from phasekit.cache.base_cache_store import BaseStateStore
from phasekit.cache.cache_factory import create_state_store
from phasekit.config.settings import Settings, require_agent
from phasekit.core.errors import PhaseKitError, UnknownSeriesOrVersionError
from phasekit.core.models import Manifest, PhaseDefinition
from phasekit.engine.diff import PhaseDiff, diff_phases
from phasekit.engine.evolution import EvolutionEngine
from phasekit.engine.executor import ExecutionEngine, RunOptions, RunResult
from phasekit.engine.inputs import InputResolver, Prompter
from phasekit.engine.migration import MigrationEngine
from phasekit.engine.scanner import ArtifactScanner
from phasekit.logging.context import clear_context, set_command_context
from phasekit.manifest.graph import build_plan, validate_manifest
from phasekit.manifest.phase_document import load_phase_directory
from phasekit.manifest.selector import SelectionSpec, select_phases
from phasekit.manifest.store import ManifestStore
from phasekit.storage.archive import ArchiveStore
from phasekit.tracking.execution_log import ExecutionLog, RunRecorder
from phasekit.tracking.models import ExecutionLogRecord

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    """Stores and capabilities of one project, resolved from Settings."""

    settings: Settings
    manifests: ManifestStore
    archive: ArchiveStore
    state_store: BaseStateStore
    execution_log: ExecutionLog
    build_validator: BaseBuildValidator

    @property
    def project_root(self) -> Path:
        return self.settings.project_root

    def engine(
        self, agent: BaseAgentBackend | None, prompter: Prompter | None = None
    ) -> ExecutionEngine:
        return ExecutionEngine(
            project_root=self.project_root,
            state_store=self.state_store,
            archive=self.archive,
            agent=agent,
            build_validator=self.build_validator,
            resolver=InputResolver(self.state_store, prompter),
            agent_timeout_s=self.settings.agent_timeout_s,
            agent_max_retries=self.settings.agent_max_retries,
            protected_dirs=_protected_dirs(self.settings),
        )


def build_workspace(settings: Settings | None = None) -> Workspace:
    """Wire every store from settings."""
    settings = settings or Settings()
    return Workspace(
        settings=settings,
        manifests=ManifestStore(settings.resolved_manifests_dir),
        archive=ArchiveStore(settings.resolved_archive_dir),
        state_store=create_state_store(settings),
        execution_log=ExecutionLog(settings.resolved_logs_dir),
        build_validator=create_build_validator(settings),
    )


def _protected_dirs(settings: Settings) -> list[str]:
    """Project-relative directories agents may never write into."""
    root = settings.project_root.resolve()
    protected = []
    for path in (
        settings.resolved_state_dir,
        settings.resolved_manifests_dir,
        settings.resolved_archive_dir,
        settings.resolved_logs_dir,
    ):
        try:
            protected.append(path.resolve().relative_to(root).as_posix())
        except ValueError:
            continue
    return protected


def _resolve_version(ws: Workspace, series: str, version: str | None) -> str:
    if version:
        return version
    latest = ws.manifests.latest_version(series)
    if latest is None:
        raise UnknownSeriesOrVersionError(series, None, ws.manifests.list_series())
    return latest


def _resolve_agent(
    ws: Workspace, agent: str | None, agent_backend: BaseAgentBackend | None
) -> BaseAgentBackend:
    if agent_backend is not None:
        return agent_backend
    return create_agent_backend(require_agent(ws.settings, agent), ws.settings)


def run_status(run: RunResult, continue_on_error: bool) -> CommandStatus:
    if not run.failed and not run.skipped:
        return CommandStatus.SUCCEEDED
    if continue_on_error and run.succeeded:
        return CommandStatus.PARTIAL
    return CommandStatus.FAILED


def _finish(
    ws: Workspace,
    recorder: RunRecorder,
    status: CommandStatus,
) -> Path | None:
    """Write the command's single log record."""
    try:
        return ws.execution_log.append(recorder.build_record(status.value))
    except OSError as exc:
        logger.error("Could not write execution log: %s", exc)
        return None


def _result_from_run(
    command: str,
    recorder: RunRecorder,
    run: RunResult,
    status: CommandStatus,
    log_path: Path | None,
    warnings: list[str],
    details: dict[str, Any] | None = None,
) -> CommandResult:
    return CommandResult(
        command=command,
        series=recorder.series,
        version=recorder.version,
        status=status,
        summary=run.counts(),
        phases=[e.phase_id for e in run.entries],
        failed=run.failed,
        warnings=warnings,
        details=details or {},
        log_path=log_path,
    )


async def execute(
    series: str,
    version: str | None = None,
    selection: SelectionSpec | None = None,
    *,
    agent: str | None = None,
    continue_on_error: bool | None = None,
    interactive: bool = False,
    inputs: Mapping[str, Any] | None = None,
    force: bool = False,
    settings: Settings | None = None,
    workspace: Workspace | None = None,
    agent_backend: BaseAgentBackend | None = None,
    prompter: Prompter | None = None,
) -> CommandResult:
    """Run the selected phases of series@version (latest when omitted).

    Raises:
        ConfigurationError: If no agent is configured.
        UnknownSeriesOrVersionError: If the manifest does not exist.
        InvalidManifestError: If the manifest is not a valid DAG.
        SelectionError: If the selection names unknown phases.
    """
    ws = workspace or build_workspace(settings)
    keep_going = ws.settings.continue_on_error if continue_on_error is None else continue_on_error
    recorder = RunRecorder(series, version or "", "execute", agent=agent)
    set_command_context("execute", series, version)
    status = CommandStatus.FAILED
    try:
        backend = _resolve_agent(ws, agent, agent_backend)
        recorder.agent = backend.name
        recorder.version = _resolve_version(ws, series, version)
        set_command_context("execute", series, recorder.version)
        manifest = ws.manifests.load(series, recorder.version)
        validate_manifest(manifest)
        chosen = select_phases(manifest, selection)
        for warning in chosen.warnings:
            recorder.note(warning)

        run = await ws.engine(backend, prompter).run(
            manifest,
            chosen,
            RunOptions(
                continue_on_error=keep_going,
                interactive=interactive,
                force=force,
                inputs=dict(inputs or {}),
                max_parallel=ws.settings.max_parallel_phases,
            ),
            recorder,
        )
        if run.not_run:
            recorder.detail("not_run", run.not_run)
        status = run_status(run, keep_going)
    except PhaseKitError as exc:
        recorder.note(f"fatal: {exc}")
        raise
    finally:
        log_path = _finish(ws, recorder, status)
        clear_context()

    return _result_from_run("execute", recorder, run, status, log_path, chosen.warnings)


async def validate(
    series: str,
    version: str | None = None,
    selection: SelectionSpec | None = None,
    *,
    inputs: Mapping[str, Any] | None = None,
    settings: Settings | None = None,
    workspace: Workspace | None = None,
) -> ValidationReport:
    """Check manifest structure, the selection and instruction rendering.

    No agent is called and nothing is written except the log record.
    """
    ws = workspace or build_workspace(settings)
    recorder = RunRecorder(series, version or "", "validate")
    set_command_context("validate", series, version)
    status = CommandStatus.FAILED
    try:
        recorder.version = _resolve_version(ws, series, version)
        manifest = ws.manifests.load(series, recorder.version)
        validate_manifest(manifest)
        chosen = select_phases(manifest, selection)
        for warning in chosen.warnings:
            recorder.note(warning)

        run = await ws.engine(None).run(
            manifest,
            chosen,
            RunOptions(dry_run=True, continue_on_error=True, inputs=dict(inputs or {})),
            recorder,
        )
        status = CommandStatus.SUCCEEDED if not run.failed else CommandStatus.FAILED
    except PhaseKitError as exc:
        recorder.note(f"fatal: {exc}")
        raise
    finally:
        _finish(ws, recorder, status)
        clear_context()

    plan = build_plan(manifest)
    warnings = list(chosen.warnings)
    for entry in run.entries:
        warnings.extend(f"{entry.phase_id}: {w}" for w in entry.warnings)
    return ValidationReport(
        series=series,
        version=recorder.version,
        phases=chosen.phase_ids,
        levels=plan.levels,
        warnings=warnings,
        errors={e.phase_id: e.error or "" for e in run.entries if e.error},
    )


async def merge(
    series: str,
    old_version: str,
    new_phases: list[PhaseDefinition] | Path,
    *,
    version_override: str | None = None,
    dry_run_check: bool = True,
    settings: Settings | None = None,
    workspace: Workspace | None = None,
) -> CommandResult:
    """Publish a new version of a series from a regenerated phase set.

    Args:
        new_phases: Phase definitions, or a directory of phase documents.

    Raises:
        UnknownSeriesOrVersionError: If old_version is not stored.
        VersionConflictError: If the target version already exists.
        InvalidManifestError: If the merged manifest is invalid.
    """
    ws = workspace or build_workspace(settings)
    recorder = RunRecorder(series, old_version, "merge")
    set_command_context("merge", series, old_version)
    status = CommandStatus.FAILED
    try:
        phases = (
            load_phase_directory(new_phases, series=series)
            if isinstance(new_phases, Path)
            else list(new_phases)
        )
        evolution = EvolutionEngine(ws.manifests, ws.archive, ws.engine(None))
        result = await evolution.merge(
            series,
            old_version,
            phases,
            version_override=version_override,
            dry_run_check=dry_run_check,
            recorder=recorder,
        )
        status = CommandStatus.SUCCEEDED
    except PhaseKitError as exc:
        recorder.note(f"fatal: {exc}")
        raise
    finally:
        log_path = _finish(ws, recorder, status)
        clear_context()

    return CommandResult(
        command="merge",
        series=series,
        version=result.new_version,
        status=status,
        phases=result.manifest.phase_ids,
        details={
            "old_version": old_version,
            "new_version": result.new_version,
            "bump": result.bump.value if result.bump else "override",
            "diff": result.diff.summary(),
            "archived_manifest": result.archive_entry.archive_path,
        },
        log_path=log_path,
    )


async def migrate(
    series: str,
    from_version: str,
    to_version: str | None = None,
    scope: Path | None = None,
    *,
    agent: str | None = None,
    continue_on_error: bool | None = None,
    interactive: bool = False,
    inputs: Mapping[str, Any] | None = None,
    settings: Settings | None = None,
    workspace: Workspace | None = None,
    agent_backend: BaseAgentBackend | None = None,
    prompter: Prompter | None = None,
) -> CommandResult:
    """Regenerate artifacts of from_version whose phases changed in to_version.

    Raises:
        ConfigurationError: If no agent is configured.
        UnknownSeriesOrVersionError: If either version is not stored.
        InvalidManifestError: If the target manifest is invalid.
    """
    ws = workspace or build_workspace(settings)
    keep_going = ws.settings.continue_on_error if continue_on_error is None else continue_on_error
    recorder = RunRecorder(series, to_version or "", "migrate", agent=agent)
    set_command_context("migrate", series, to_version)
    status = CommandStatus.FAILED
    try:
        backend = _resolve_agent(ws, agent, agent_backend)
        recorder.agent = backend.name
        recorder.version = _resolve_version(ws, series, to_version)
        set_command_context("migrate", series, recorder.version)
        scanner = ArtifactScanner(
            ws.project_root,
            exclude_dirs=ws.settings.scan_exclude_list,
            state_dir=str(ws.settings.state_dir),
        )
        migration = MigrationEngine(ws.manifests, ws.engine(backend, prompter), scanner)
        result = await migration.migrate(
            series,
            from_version,
            recorder.version,
            scope or Path("."),
            RunOptions(
                continue_on_error=keep_going,
                interactive=interactive,
                inputs=dict(inputs or {}),
                max_parallel=ws.settings.max_parallel_phases,
            ),
            recorder,
        )
        status = run_status(result.run, keep_going)
    except PhaseKitError as exc:
        recorder.note(f"fatal: {exc}")
        raise
    finally:
        log_path = _finish(ws, recorder, status)
        clear_context()

    return _result_from_run(
        "migrate",
        recorder,
        result.run,
        status,
        log_path,
        result.warnings,
        details={
            "from_version": from_version,
            "to_version": recorder.version,
            "regeneration": result.regeneration,
            "diff": result.diff.summary(),
        },
    )


def diff_versions(
    series: str,
    old_version: str,
    new_version: str,
    *,
    settings: Settings | None = None,
    workspace: Workspace | None = None,
) -> PhaseDiff:
    """Classify phases between two stored versions (read-only)."""
    ws = workspace or build_workspace(settings)
    old: Manifest = ws.manifests.load(series, old_version)
    new: Manifest = ws.manifests.load(series, new_version)
    return diff_phases(old.phases, new.phases)


def list_versions(
    series: str | None = None,
    *,
    settings: Settings | None = None,
    workspace: Workspace | None = None,
) -> dict[str, list[str]]:
    """Stored versions per series (read-only)."""
    ws = workspace or build_workspace(settings)
    names = [series] if series else ws.manifests.list_series()
    return {name: ws.manifests.list_versions(name) for name in names}


def read_log(
    series: str | None = None,
    command: str | None = None,
    *,
    settings: Settings | None = None,
    workspace: Workspace | None = None,
) -> list[ExecutionLogRecord]:
    """Execution log records, oldest first (read-only)."""
    ws = workspace or build_workspace(settings)
    return ws.execution_log.records(series=series, command=command)
