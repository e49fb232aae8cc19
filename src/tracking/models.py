# src/tracking/models.py — v1
"""Execution log models: ExecutionLogRecord, PhaseLogEntry, BuildResult.

One ExecutionLogRecord is written per command invocation and never
modified afterwards.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class PhaseStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class BuildResult(BaseModel):
    """Outcome of the build-validation capability."""

    passed: bool
    diagnostics: str = ""
    exit_code: int | None = None
    duration_ms: int = 0
    skipped: bool = False


class PhaseLogEntry(BaseModel):
    """Result of one phase within a command run."""

    phase_id: str
    status: PhaseStatus
    already_satisfied: bool = False
    chained_from: str | None = None
    inputs: dict[str, Any] = Field(default_factory=dict)
    created_files: list[str] = Field(default_factory=list)
    modified_files: list[str] = Field(default_factory=list)
    stub_files: list[str] = Field(default_factory=list)
    preserved_files: list[str] = Field(default_factory=list)
    archived: list[str] = Field(default_factory=list)
    build: BuildResult | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)
    duration_ms: int = 0


class ExecutionLogRecord(BaseModel):
    """Structured record of one command invocation."""

    timestamp: datetime
    series: str
    version: str
    command: str
    agent: str | None = None
    phases_run: list[str] = Field(default_factory=list)
    results: dict[str, PhaseLogEntry] = Field(default_factory=dict)
    created_files: list[str] = Field(default_factory=list)
    modified_files: list[str] = Field(default_factory=list)
    build_passed: bool | None = None
    status: str = "succeeded"
    summary: dict[str, int] = Field(default_factory=dict)
    details: dict[str, Any] = Field(default_factory=dict)
    notes: list[str] = Field(default_factory=list)
