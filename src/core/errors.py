# src/core/errors.py — v1
"""Exception hierarchy shared across the manifest, engine and command layers.

Fatal errors (configuration, unknown series/version, invalid manifest,
selection) abort a command before any phase runs. PhaseExecutionError and
its subclasses are isolated to a single phase and fed into the
stop/continue-on-error policy of the engine.
"""

from __future__ import annotations


class PhaseKitError(Exception):
    """Base class for all phasekit errors."""


class UnknownSeriesOrVersionError(PhaseKitError):
    """Raised when a (series, version) pair has no stored manifest."""

    def __init__(self, series: str, version: str | None, known: list[str]) -> None:
        self.series = series
        self.version = version
        self.known = known
        if version is None:
            target = f"series '{series}'"
        else:
            target = f"version '{version}' of series '{series}'"
        alternatives = ", ".join(known) if known else "none"
        super().__init__(f"Unknown {target}. Known: {alternatives}")


class InvalidManifestError(PhaseKitError):
    """Raised when a manifest is not a valid phase DAG."""

    def __init__(self, message: str, phase_ids: list[str] | None = None) -> None:
        self.phase_ids = phase_ids or []
        super().__init__(message)


class CycleError(InvalidManifestError):
    """Dependency cycle between phases."""


class DanglingDependencyError(InvalidManifestError):
    """A phase depends on an id that is not in the manifest."""


class DuplicatePhaseError(InvalidManifestError):
    """Two phases share the same id."""


class OverlappingProducesError(InvalidManifestError):
    """Two unrelated phases declare the same produced path."""


class PhaseDocumentError(PhaseKitError):
    """Raised when a phase document header cannot be parsed."""


class SelectionError(PhaseKitError):
    """Raised when a selection names phases absent from the manifest."""


class VersionConflictError(PhaseKitError):
    """Raised when a merge would overwrite an already published version."""


class PhaseExecutionError(PhaseKitError):
    """Failure confined to a single phase."""

    def __init__(self, phase_id: str, message: str) -> None:
        self.phase_id = phase_id
        super().__init__(f"Phase '{phase_id}': {message}")


class InputResolutionError(PhaseExecutionError):
    """A required input could not be resolved or coerced."""

    def __init__(self, phase_id: str, input_name: str, reason: str = "no value") -> None:
        self.input_name = input_name
        super().__init__(phase_id, f"input '{input_name}' unresolved ({reason})")


class DependencyUnmetError(PhaseExecutionError):
    """A dependency outside the run has no outputs on disk."""

    def __init__(self, phase_id: str, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            phase_id, f"dependencies without outputs: {', '.join(missing)}"
        )


class AgentFailureError(PhaseExecutionError):
    """The agent capability failed to produce files."""

    def __init__(self, phase_id: str, agent: str, reason: str) -> None:
        self.agent = agent
        super().__init__(phase_id, f"agent '{agent}' failed: {reason}")


class AgentTimeoutError(AgentFailureError):
    """The agent capability exceeded its timeout."""

    def __init__(self, phase_id: str, agent: str, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(phase_id, agent, f"timed out after {timeout_s:.0f}s")


class BuildValidationError(PhaseExecutionError):
    """Build validation reported a failure after the phase wrote its files."""

    def __init__(self, phase_id: str, diagnostics: str) -> None:
        self.diagnostics = diagnostics
        super().__init__(phase_id, "build validation failed")


class UnsafeArtifactPathError(PhaseExecutionError):
    """An agent returned a path outside the project root."""

    def __init__(self, phase_id: str, path: str) -> None:
        self.path = path
        super().__init__(phase_id, f"refusing to write outside project: {path}")


class ArtifactWriteError(PhaseExecutionError):
    """Reading, archiving or writing an artifact failed at the filesystem level."""

    def __init__(self, phase_id: str, path: str, error: OSError) -> None:
        self.path = path
        self.error = error
        super().__init__(phase_id, f"filesystem error on {path}: {error}")
