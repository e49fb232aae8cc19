# src/build/command_validator.py — v1
"""Shell-command build validator (PHASEKIT_BUILD_COMMAND).

The command runs in the project root; exit code 0 passes. A timeout kills
the process and yields a failed result carrying a diagnostic.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from phasekit.build.base_validator import BaseBuildValidator
from phasekit.tracking.models import BuildResult

logger = logging.getLogger(__name__)

_DIAGNOSTIC_TAIL_CHARS = 4000


class CommandBuildValidator(BaseBuildValidator):
    """Run a shell command and map its exit status to a BuildResult."""

    def __init__(self, command: str, timeout_s: float = 600.0) -> None:
        self._command = command
        self._timeout_s = timeout_s

    @property
    def command(self) -> str:
        return self._command

    async def validate(self, project_root: Path, changed_files: list[str]) -> BuildResult:
        start = time.monotonic()
        logger.info("Build validation: %s (%d changed files)", self._command, len(changed_files))
        proc = await asyncio.create_subprocess_shell(
            self._command,
            cwd=str(project_root),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Build validation timed out after %.0fs", self._timeout_s)
            return BuildResult(
                passed=False,
                diagnostics=f"build command timed out after {self._timeout_s:.0f}s",
                duration_ms=_elapsed_ms(start),
            )
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        output = stdout.decode("utf-8", errors="replace")
        passed = proc.returncode == 0
        if not passed:
            logger.warning("Build validation failed with exit code %s", proc.returncode)
        return BuildResult(
            passed=passed,
            diagnostics="" if passed else output[-_DIAGNOSTIC_TAIL_CHARS:],
            exit_code=proc.returncode,
            duration_ms=_elapsed_ms(start),
        )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
