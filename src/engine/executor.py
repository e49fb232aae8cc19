# src/engine/executor.py — v1
"""Execution engine — run selected phases of a manifest through an agent.

Phases run in topological order. Each phase resolves its inputs, renders
its instruction, calls the agent, archives every file it is about to
overwrite, refreshes provenance headers, writes atomically and runs build
validation. Manual-extension files are created as empty stubs at most
once and never rewritten.

Failure policy:
    stop-on-error (default)  the first failed phase halts the run
    continue-on-error        failures are recorded, their dependents are
                             skipped, independent phases keep running
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Callable

from phasekit.agents.base_backend import BaseAgentBackend
from phasekit.agents.models import AgentRequest, AgentResult
from phasekit.agents.retry import AgentRetryExhausted, retry_configs_for, with_retry
from phasekit.build.base_validator import BaseBuildValidator, NullBuildValidator
from phasekit.cache.base_cache_store import BaseStateStore
from phasekit.core.errors import (
    AgentFailureError,
    AgentTimeoutError,
    ArtifactWriteError,
    BuildValidationError,
    DependencyUnmetError,
    PhaseExecutionError,
    UnsafeArtifactPathError,
)
from phasekit.core.models import Manifest, PhaseDefinition, PhaseStateRecord, ProvenanceFields
from phasekit.engine.inputs import (
    InputResolver,
    instruction_fingerprint,
    overrides_for,
    placeholders,
    render_instruction,
)
from phasekit.logging.context import set_phase_context
from phasekit.manifest.graph import validate_manifest
from phasekit.manifest.selector import Selection
from phasekit.provenance.codec import decode_header, inject_header
from phasekit.storage import layout
from phasekit.storage.archive import ArchiveStore
from phasekit.storage.base_output_writer import BaseOutputWriter
from phasekit.storage.local_writer import LocalWriter
from phasekit.tracking.execution_log import RunRecorder
from phasekit.tracking.models import PhaseLogEntry, PhaseStatus

logger = logging.getLogger(__name__)

_GLOB_CHARS = frozenset("*?[")


@dataclass(frozen=True)
class RunOptions:
    """Per-command execution options."""

    continue_on_error: bool = False
    dry_run: bool = False
    interactive: bool = False
    force: bool = False
    inputs: Mapping[str, Any] = field(default_factory=dict)
    fallback_versions: tuple[str, ...] = ()
    allow_stubs: bool = True
    chain_verifications: bool = True
    max_parallel: int = 1


@dataclass
class PhaseOutcome:
    """Log entry of one phase plus the text it wrote (for chaining)."""

    entry: PhaseLogEntry
    files: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.entry.status == PhaseStatus.SUCCESS


@dataclass
class RunResult:
    """Outcome of ExecutionEngine.run()."""

    series: str
    version: str
    entries: list[PhaseLogEntry] = field(default_factory=list)
    not_run: list[str] = field(default_factory=list)
    halted: bool = False

    def _ids(self, status: PhaseStatus) -> list[str]:
        return [e.phase_id for e in self.entries if e.status == status]

    @property
    def succeeded(self) -> list[str]:
        return self._ids(PhaseStatus.SUCCESS)

    @property
    def failed(self) -> list[str]:
        return self._ids(PhaseStatus.FAILED)

    @property
    def skipped(self) -> list[str]:
        return self._ids(PhaseStatus.SKIPPED)

    @property
    def already_satisfied(self) -> list[str]:
        return [e.phase_id for e in self.entries if e.already_satisfied]

    def counts(self) -> dict[str, int]:
        return {
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "already_satisfied": len(self.already_satisfied),
            "not_run": len(self.not_run),
        }

    def entry(self, phase_id: str) -> PhaseLogEntry | None:
        for e in self.entries:
            if e.phase_id == phase_id:
                return e
        return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionEngine:
    """Runs phases with archival, provenance and atomic writes."""

    def __init__(
        self,
        project_root: Path,
        state_store: BaseStateStore,
        archive: ArchiveStore,
        agent: BaseAgentBackend | None = None,
        writer: BaseOutputWriter | None = None,
        build_validator: BaseBuildValidator | None = None,
        resolver: InputResolver | None = None,
        agent_timeout_s: float = 900.0,
        agent_max_retries: int = 2,
        protected_dirs: Iterable[str] = (layout.DEFAULT_STATE_DIR,),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._root = Path(project_root)
        self._store = state_store
        self._archive = archive
        self._agent = agent
        self._writer = writer or LocalWriter(self._root)
        self._build = build_validator or NullBuildValidator()
        self._resolver = resolver or InputResolver(state_store)
        self._agent_timeout_s = agent_timeout_s
        self._retry_configs = retry_configs_for(agent_max_retries)
        self._protected = tuple(PurePosixPath(d).as_posix().strip("/") for d in protected_dirs)
        self._clock = clock or _utcnow
        self._path_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def agent_name(self) -> str:
        return self._agent.name if self._agent is not None else "none"

    # ------------------------------------------------------------------
    # Multi-phase scheduling
    # ------------------------------------------------------------------

    async def run(
        self,
        manifest: Manifest,
        selection: Selection,
        options: RunOptions | None = None,
        recorder: RunRecorder | None = None,
    ) -> RunResult:
        """Run the selected phases of a validated manifest.

        Raises:
            InvalidManifestError: If the manifest is not a valid DAG.
        """
        options = options or RunOptions()
        validate_manifest(manifest)

        selected = list(selection.phase_ids)
        selected_set = set(selected)
        result = RunResult(series=manifest.series, version=manifest.version)
        produced: dict[str, dict[str, str]] = {}
        succeeded: set[str] = set()
        unusable: set[str] = set()
        chain_candidates: dict[str, str] = {}
        chained: set[str] = set()
        remaining = list(selected)
        parallel = max(1, options.max_parallel)
        semaphore = asyncio.Semaphore(parallel)

        def _collect(outcome: PhaseOutcome) -> None:
            result.entries.append(outcome.entry)
            pid = outcome.entry.phase_id
            if outcome.ok:
                succeeded.add(pid)
                produced[pid] = outcome.files
                if (
                    options.chain_verifications
                    and not options.dry_run
                    and not outcome.entry.already_satisfied
                    and not manifest.get_or_raise(pid).is_verification
                ):
                    for dependent in manifest.direct_dependents(pid):
                        if (
                            dependent.is_verification
                            and dependent.id not in selected_set
                            and dependent.id not in chained
                        ):
                            chain_candidates.setdefault(dependent.id, pid)
            else:
                unusable.add(pid)

        while remaining and not result.halted:
            ready: list[str] = []
            for pid in list(remaining):
                phase = manifest.get_or_raise(pid)
                blockers = [d for d in phase.depends_on if d in unusable]
                if blockers:
                    remaining.remove(pid)
                    outcome = self._skipped(pid, f"dependency {blockers} did not succeed")
                    _collect(outcome)
                    if recorder is not None:
                        recorder.record_phase(outcome.entry)
                    continue
                if all(d in succeeded or d not in selected_set for d in phase.depends_on):
                    ready.append(pid)
            if not ready:
                break
            wave = ready[:parallel]
            for pid in wave:
                remaining.remove(pid)

            async def _guarded(pid: str) -> PhaseOutcome:
                async with semaphore:
                    return await self.run_phase(
                        manifest, pid, options, recorder, selection_ids=selected_set
                    )

            outcomes = await asyncio.gather(*(_guarded(pid) for pid in wave))
            for outcome in outcomes:
                _collect(outcome)

            await self._run_chains(
                manifest, options, recorder, selected_set, succeeded, produced,
                chain_candidates, chained, _collect,
            )

            if not options.continue_on_error and result.failed:
                result.halted = True

        result.not_run = remaining
        if result.halted and remaining:
            logger.warning(
                "Stopped after failure; %d phases not run: %s", len(remaining), remaining
            )
        logger.info(
            "Run %s@%s finished: %s", manifest.series, manifest.version, result.counts()
        )
        return result

    async def _run_chains(
        self,
        manifest: Manifest,
        options: RunOptions,
        recorder: RunRecorder | None,
        selected_set: set[str],
        succeeded: set[str],
        produced: dict[str, dict[str, str]],
        candidates: dict[str, str],
        chained: set[str],
        collect: Callable[[PhaseOutcome], None],
    ) -> None:
        """Run verification phases triggered by fresh generation results.

        A candidate waits until every dependency inside the selection has
        succeeded; dependencies outside it are checked at run time.
        """
        for vid in [pid for pid in manifest.phase_ids if pid in candidates]:
            phase = manifest.get_or_raise(vid)
            if not all(d in succeeded or d not in selected_set for d in phase.depends_on):
                continue
            trigger = candidates.pop(vid)
            chained.add(vid)
            context: dict[str, str] = {}
            for dep in phase.depends_on:
                context.update(produced.get(dep, {}))
            logger.info("Chaining verification %s after %s", vid, trigger)
            outcome = await self.run_phase(
                manifest,
                vid,
                options,
                recorder,
                selection_ids=selected_set | {vid},
                context_files=context,
                chained_from=trigger,
            )
            collect(outcome)

    def _skipped(self, phase_id: str, reason: str) -> PhaseOutcome:
        logger.warning("Skipping %s: %s", phase_id, reason)
        return PhaseOutcome(
            PhaseLogEntry(phase_id=phase_id, status=PhaseStatus.SKIPPED, error=reason)
        )

    # ------------------------------------------------------------------
    # Single-phase path
    # ------------------------------------------------------------------

    async def run_phase(
        self,
        manifest: Manifest,
        phase_id: str,
        options: RunOptions | None = None,
        recorder: RunRecorder | None = None,
        selection_ids: set[str] | None = None,
        context_files: dict[str, str] | None = None,
        chained_from: str | None = None,
    ) -> PhaseOutcome:
        """Run one phase and record its log entry.

        Per-phase errors are captured in the returned entry; they never
        propagate to the caller.
        """
        options = options or RunOptions()
        phase = manifest.get_or_raise(phase_id)
        selection_ids = selection_ids if selection_ids is not None else {phase_id}
        start = time.monotonic()
        set_phase_context(phase_id)
        entry = PhaseLogEntry(
            phase_id=phase_id, status=PhaseStatus.SUCCESS, chained_from=chained_from
        )
        files: dict[str, str] = {}
        try:
            files = await self._execute(
                manifest, phase, options, selection_ids, context_files or {}, entry
            )
        except PhaseExecutionError as exc:
            entry.status = PhaseStatus.FAILED
            entry.error = str(exc)
            logger.error("%s", exc)
        finally:
            entry.duration_ms = int((time.monotonic() - start) * 1000)
            set_phase_context(None)

        if recorder is not None:
            recorder.record_phase(entry)
        return PhaseOutcome(entry=entry, files=files)

    async def _execute(
        self,
        manifest: Manifest,
        phase: PhaseDefinition,
        options: RunOptions,
        selection_ids: set[str],
        context_files: dict[str, str],
        entry: PhaseLogEntry,
    ) -> dict[str, str]:
        series, version = manifest.series, manifest.version
        inputs = await self._resolver.resolve(
            phase,
            series,
            version,
            overrides=overrides_for(phase.id, options.inputs),
            fallback_versions=options.fallback_versions,
            interactive=options.interactive,
            strict=not options.dry_run,
        )
        entry.inputs = inputs
        instruction = render_instruction(phase.content, inputs)

        if options.dry_run:
            self._check_placeholders(phase)
            declared = {i.name for i in phase.inputs}
            unresolved = sorted(declared - set(inputs))
            if unresolved:
                entry.warnings.append(f"unresolved inputs: {unresolved}")
            logger.info("Dry run: %s renders %d chars", phase.id, len(instruction))
            return {}

        fingerprint = instruction_fingerprint(phase, instruction, inputs)
        if not options.force and await self._already_satisfied(series, version, phase.id, fingerprint):
            entry.already_satisfied = True
            logger.info("%s already satisfied; skipping agent call", phase.id)
            return {}

        await self._check_dependencies(manifest, phase, selection_ids, options)

        result = await self._invoke_agent(manifest, phase, instruction, inputs, context_files)
        written = await self._write_files(manifest, phase, result, options, entry)

        changed = entry.created_files + entry.modified_files
        build = await self._build.validate(self._root, changed)
        entry.build = build
        if not build.passed:
            raise BuildValidationError(phase.id, build.diagnostics)

        await self._store.put(
            PhaseStateRecord(
                series=series,
                version=version,
                phase_id=phase.id,
                inputs=inputs,
                instruction_hash=fingerprint,
                produced_paths=sorted(written),
                agent=result.agent,
                updated_at=self._clock(),
            )
        )
        logger.info(
            "%s done: %d created, %d modified, %d archived",
            phase.id, len(entry.created_files), len(entry.modified_files), len(entry.archived),
        )
        return written

    def _check_placeholders(self, phase: PhaseDefinition) -> None:
        declared = {i.name for i in phase.inputs}
        undeclared = [name for name in placeholders(phase.content) if name not in declared]
        if undeclared:
            raise PhaseExecutionError(
                phase.id, f"instruction references undeclared inputs: {undeclared}"
            )

    async def _already_satisfied(
        self, series: str, version: str, phase_id: str, fingerprint: str
    ) -> bool:
        """Same fingerprint as last success and every output still ours."""
        record = await self._store.get(series, version, phase_id)
        if record is None or record.instruction_hash != fingerprint:
            return False
        for path in record.produced_paths:
            if not await self._writer.exists(path):
                return False
            try:
                raw = await self._writer.read(path)
            except OSError as exc:
                raise ArtifactWriteError(phase_id, path, exc) from exc
            text = raw.decode("utf-8", errors="replace")
            header = decode_header(text, path)
            if header is None or not header.matches(series, version, phase_id):
                return False
        return True

    async def _check_dependencies(
        self,
        manifest: Manifest,
        phase: PhaseDefinition,
        selection_ids: set[str],
        options: RunOptions,
    ) -> None:
        """Dependencies outside the run must have left outputs on disk."""
        missing: list[str] = []
        for dep_id in phase.depends_on:
            if dep_id in selection_ids:
                continue
            if not await self._dependency_present(manifest, manifest.get_or_raise(dep_id), options):
                missing.append(dep_id)
        if missing:
            raise DependencyUnmetError(phase.id, missing)

    async def _dependency_present(
        self, manifest: Manifest, dep: PhaseDefinition, options: RunOptions
    ) -> bool:
        if dep.produces:
            for hint in dep.produces:
                if _GLOB_CHARS & set(hint):
                    if not any(self._root.glob(hint)):
                        return False
                elif not await self._writer.exists(hint):
                    return False
            return True

        for version in (manifest.version, *options.fallback_versions):
            record = await self._store.get(manifest.series, version, dep.id)
            if record is None:
                continue
            for path in record.produced_paths:
                if not await self._writer.exists(path):
                    return False
            return True
        return False

    async def _invoke_agent(
        self,
        manifest: Manifest,
        phase: PhaseDefinition,
        instruction: str,
        inputs: dict[str, Any],
        context_files: dict[str, str],
    ) -> AgentResult:
        if self._agent is None:
            raise AgentFailureError(phase.id, "none", "no agent configured")
        request = AgentRequest(
            series=manifest.series,
            version=manifest.version,
            phase_id=phase.id,
            phase_type=phase.type.value,
            instruction=instruction,
            inputs=inputs,
            project_root=self._root,
            context_files=context_files,
        )
        agent = self._agent.name
        logger.info("Invoking agent %s for %s", agent, phase.id)
        try:
            return await asyncio.wait_for(
                with_retry(
                    self._agent.invoke,
                    request,
                    agent=agent,
                    retry_configs=self._retry_configs,
                ),
                timeout=self._agent_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise AgentTimeoutError(phase.id, agent, self._agent_timeout_s) from exc
        except AgentRetryExhausted as exc:
            raise AgentFailureError(phase.id, agent, str(exc.last_error)) from exc

    def _safe_path(self, phase_id: str, raw: str) -> str:
        """Normalize an agent path; reject anything outside the project."""
        rel = PurePosixPath(raw.replace("\\", "/"))
        if rel.is_absolute() or not rel.parts or ".." in rel.parts:
            raise UnsafeArtifactPathError(phase_id, raw)
        posix = rel.as_posix()
        for protected in self._protected:
            if posix == protected or posix.startswith(protected + "/"):
                raise UnsafeArtifactPathError(phase_id, raw)
        root = self._root.resolve()
        target = (root / posix).resolve()
        if target != root and root not in target.parents:
            raise UnsafeArtifactPathError(phase_id, raw)
        return posix

    async def _write_files(
        self,
        manifest: Manifest,
        phase: PhaseDefinition,
        result: AgentResult,
        options: RunOptions,
        entry: PhaseLogEntry,
    ) -> dict[str, str]:
        """Archive, stamp and atomically write every returned file.

        All paths are checked before the first write.
        """
        planned = [(self._safe_path(phase.id, f.path), f.content) for f in result.files]
        written: dict[str, str] = {}
        for rel, content in planned:
            try:
                if manifest.is_manual_extension(rel):
                    await self._handle_manual_extension(rel, options, entry)
                    continue
                written[rel] = await self._write_one(manifest, phase, result, rel, content, entry)
            except OSError as exc:
                raise ArtifactWriteError(phase.id, rel, exc) from exc
        return written

    async def _write_one(
        self,
        manifest: Manifest,
        phase: PhaseDefinition,
        result: AgentResult,
        rel: str,
        content: str,
        entry: PhaseLogEntry,
    ) -> str:
        async with self._path_locks[rel]:
            fields = ProvenanceFields(
                series=manifest.series,
                version=manifest.version,
                phase_id=phase.id,
                agent=result.agent,
                timestamp=self._clock(),
                source=phase.source,
            )
            text = inject_header(content, fields, rel)
            if await self._writer.exists(rel):
                previous = await self._writer.read(rel)
                archived = await self._archive.archive_file(
                    rel, previous, manifest.series, manifest.version, phase.id
                )
                entry.archived.append(archived.archive_path)
                entry.modified_files.append(rel)
            else:
                entry.created_files.append(rel)
            await self._writer.write(rel, text)
        return text

    async def _handle_manual_extension(
        self, rel: str, options: RunOptions, entry: PhaseLogEntry
    ) -> None:
        if options.allow_stubs and await self._writer.write_if_absent(rel, ""):
            entry.stub_files.append(rel)
            message = f"ManualExtensionMissing: created empty stub {rel}"
            entry.warnings.append(message)
            logger.warning(message)
            return
        entry.preserved_files.append(rel)
        logger.info("Preserved manual extension %s", rel)
