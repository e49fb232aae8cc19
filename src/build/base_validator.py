# src/build/base_validator.py — v1
"""Abstract build-validation capability.

Runs after a phase has written its files; the engine only inspects the
returned BuildResult and never the concrete toolchain.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from phasekit.tracking.models import BuildResult


class BaseBuildValidator(ABC):
    """Unified interface for build validators."""

    @abstractmethod
    async def validate(self, project_root: Path, changed_files: list[str]) -> BuildResult:
        """Check the project after changed_files were written."""


class NullBuildValidator(BaseBuildValidator):
    """Passes unconditionally; used when no build command is configured."""

    async def validate(self, project_root: Path, changed_files: list[str]) -> BuildResult:
        return BuildResult(passed=True, skipped=True)
