# src/logging/context.py — v2
"""Contextual logging support — attach series, version, command and phase
to log records.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging — set per command and per phase.
_series: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "series", default=None
)
_version: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "version", default=None
)
_command: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "command", default=None
)
_phase: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "phase", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    series: str | None = None
    version: str | None = None
    command: str | None = None
    phase: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        series=_series.get(),
        version=_version.get(),
        command=_command.get(),
        phase=_phase.get(),
    )


def set_command_context(command: str, series: str, version: str | None = None) -> None:
    """Set command-level context (called once per command invocation)."""
    _command.set(command)
    _series.set(series)
    _version.set(version)


def set_phase_context(phase: str | None) -> None:
    """Set phase-level context (called per phase execution).

    Each asyncio task runs in a copy of the caller's context, so concurrent
    phases do not see each other's value.
    """
    _phase.set(phase)


def clear_context() -> None:
    """Reset all context variables."""
    _series.set(None)
    _version.set(None)
    _command.set(None)
    _phase.set(None)
