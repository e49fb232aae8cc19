# src/api/models.py — v2
"""API-level models: CommandStatus, CommandResult, ValidationReport."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class CommandStatus(str, Enum):
    """Overall outcome of a command, mapped to the CLI exit code."""

    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        return {"succeeded": 0, "partial": 2, "failed": 1}[self.value]


class CommandResult(BaseModel):
    """Return value of the facade commands."""

    command: str
    series: str
    version: str
    status: CommandStatus
    summary: dict[str, int] = Field(default_factory=dict)
    phases: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)
    log_path: Path | None = None


class ValidationReport(BaseModel):
    """Result of validate(): manifest structure, selection and rendering."""

    series: str
    version: str
    phases: list[str] = Field(default_factory=list)
    levels: list[list[str]] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors
