# src/core/models.py — v1
"""Core domain models: PhaseInput, PhaseDefinition, Manifest, provenance and
archive records.

Phase definitions and manifests are frozen once loaded; a published
(series, version) never changes in place. Evolution produces a new version.
"""

from __future__ import annotations

import fnmatch
import hashlib
import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PhaseType(str, Enum):
    """Kind of instruction a phase carries."""

    GENERATION = "generation"
    VERIFICATION = "verification"


InputType = Literal["string", "integer", "number", "boolean", "path", "json"]


class PhaseInput(BaseModel):
    """Declared input of a phase, substituted into its instruction text."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: InputType = "string"
    required: bool = True
    default: Any = None
    description: str = ""


class PhaseDefinition(BaseModel):
    """One unit of instruction within a manifest."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: PhaseType = PhaseType.GENERATION
    inputs: tuple[PhaseInput, ...] = ()
    depends_on: tuple[str, ...] = ()
    produces: tuple[str, ...] = ()
    content: str = ""
    manual_extension: str | None = None
    source: str | None = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:  # noqa: N805
        if not v or v != v.strip() or "/" in v:
            raise ValueError(f"Invalid phase id: {v!r}")
        return v

    @field_validator("depends_on", mode="before")
    @classmethod
    def normalize_depends_on(cls, v: Any) -> tuple[str, ...]:  # noqa: N805
        """Dependencies are a set; store them sorted for stable comparison."""
        if v is None:
            return ()
        return tuple(sorted(set(v)))

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: str | None) -> str | None:  # noqa: N805
        """Stamped into provenance headers, so it must fit on one line."""
        if v is not None and ("\n" in v or "\r" in v):
            raise ValueError(f"Phase source must be single-line: {v!r}")
        return v

    @property
    def is_verification(self) -> bool:
        return self.type == PhaseType.VERIFICATION

    def content_key(self) -> str:
        """Canonical serialization used by the diff engine for equality."""
        payload = self.model_dump(mode="json", exclude={"id"})
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))

    def content_hash(self) -> str:
        return hashlib.sha256(self.content_key().encode("utf-8")).hexdigest()

    def is_manual_extension(self, path: str) -> bool:
        """Whether a project-relative path is a human-owned companion file."""
        if not self.manual_extension:
            return False
        return matches_pattern(path, self.manual_extension)


class Manifest(BaseModel):
    """Versioned, ordered, dependency-annotated set of phases for a series."""

    model_config = ConfigDict(frozen=True)

    series: str
    version: str
    phases: tuple[PhaseDefinition, ...] = ()
    description: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def phase_ids(self) -> list[str]:
        """Phase ids in declaration order."""
        return [p.id for p in self.phases]

    def get(self, phase_id: str) -> PhaseDefinition | None:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    def get_or_raise(self, phase_id: str) -> PhaseDefinition:
        phase = self.get(phase_id)
        if phase is None:
            raise KeyError(f"Phase '{phase_id}' not in {self.series}@{self.version}")
        return phase

    def phase_map(self) -> dict[str, PhaseDefinition]:
        return {p.id: p for p in self.phases}

    def direct_dependents(self, phase_id: str) -> list[PhaseDefinition]:
        """Phases that list phase_id in depends_on, in declaration order."""
        return [p for p in self.phases if phase_id in p.depends_on]

    def is_manual_extension(self, path: str) -> bool:
        """Whether any phase claims path as a manual extension."""
        return any(p.is_manual_extension(path) for p in self.phases)


class ProvenanceFields(BaseModel):
    """Field set embedded at the top of every generated artifact."""

    model_config = ConfigDict(frozen=True)

    series: str
    version: str
    phase_id: str
    agent: str
    timestamp: datetime
    source: str | None = None

    @field_validator("series", "version", "phase_id", "agent", "source")
    @classmethod
    def validate_single_line(cls, v: str | None) -> str | None:  # noqa: N805
        if v is not None and ("\n" in v or "\r" in v):
            raise ValueError("provenance values must be single-line")
        return v

    def matches(self, series: str, version: str, phase_id: str | None = None) -> bool:
        if self.series != series or self.version != version:
            return False
        return phase_id is None or self.phase_id == phase_id


class ArtifactRecord(BaseModel):
    """A generated file together with the phase that produced it.

    content is None when only the header was read (scanning).
    """

    model_config = ConfigDict(frozen=True)

    path: str
    provenance: ProvenanceFields
    content: str | None = None


class ArchiveEntry(BaseModel):
    """Preserved prior content of an artifact or manifest."""

    model_config = ConfigDict(frozen=True)

    original_path: str
    archive_path: str
    timestamp: datetime
    series: str
    version: str
    phase_id: str | None = None
    sha256: str
    kind: Literal["artifact", "manifest"] = "artifact"


class PhaseStateRecord(BaseModel):
    """Last successful resolution of a phase: inputs, fingerprint, outputs."""

    series: str
    version: str
    phase_id: str
    inputs: dict[str, Any] = Field(default_factory=dict)
    instruction_hash: str = ""
    produced_paths: list[str] = Field(default_factory=list)
    agent: str = ""
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def matches_pattern(path: str, pattern: str) -> bool:
    """Match a project-relative posix path against a glob pattern.

    Patterns without a slash match the file name alone, so ``*.custom.ts``
    applies in any directory.
    """
    posix = PurePosixPath(path.replace("\\", "/")).as_posix()
    if "/" not in pattern:
        return fnmatch.fnmatchcase(PurePosixPath(posix).name, pattern)
    return fnmatch.fnmatchcase(posix, pattern) or PurePosixPath(posix).match(pattern)
