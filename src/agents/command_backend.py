# src/agents/command_backend.py — v1
"""Command-line agent backend (claude, cursor-agent, copilot, ...).

The agent process runs inside an empty staging directory with the
instruction on stdin. Every file it creates or changes there is returned
as an output file; the project itself is only readable, so all writes
to the project go through the engine's archive-then-write path.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import tempfile
import time
from pathlib import Path

from phasekit.agents.base_backend import AgentBackendError, BaseAgentBackend
from phasekit.agents.models import AgentFile, AgentRequest, AgentResult

logger = logging.getLogger(__name__)

_OUTPUT_TAIL_CHARS = 2000

_PREAMBLE = """\
You are executing phase {phase_id} ({phase_type}) of {series}@{version}.
The project lives at {project_root}; read it as needed but do not modify it.
Write every output file relative to the current working directory using the
project-relative path it should have.

"""


class CommandAgentBackend(BaseAgentBackend):
    """Run an external CLI agent and collect the files it writes."""

    def __init__(
        self,
        argv: list[str],
        name: str = "command",
        env: dict[str, str] | None = None,
    ) -> None:
        if not argv:
            raise ValueError("CommandAgentBackend requires a non-empty command")
        self._argv = list(argv)
        self._name = name
        self._env = env

    @property
    def name(self) -> str:
        return self._name

    @property
    def argv(self) -> list[str]:
        return list(self._argv)

    async def invoke(self, request: AgentRequest) -> AgentResult:
        """Run the agent process in a fresh staging directory."""
        start = time.monotonic()
        with tempfile.TemporaryDirectory(prefix="phasekit-agent-") as tmp:
            staging = Path(tmp)
            for rel_path, content in request.context_files.items():
                target = staging / rel_path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
            before = _snapshot(staging)

            prompt = _PREAMBLE.format(
                phase_id=request.phase_id,
                phase_type=request.phase_type,
                series=request.series,
                version=request.version,
                project_root=request.project_root.resolve(),
            ) + request.instruction

            logger.debug("Starting agent %s: %s (cwd=%s)", self._name, self._argv, staging)
            try:
                proc = await asyncio.create_subprocess_exec(
                    *self._argv,
                    cwd=str(staging),
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env={**os.environ, **self._env} if self._env else None,
                )
            except OSError as exc:
                raise AgentBackendError(f"cannot start {self._argv[0]!r}: {exc}") from exc

            try:
                stdout, stderr = await proc.communicate(prompt.encode("utf-8"))
            except asyncio.CancelledError:
                proc.kill()
                await proc.wait()
                raise

            out_text = stdout.decode("utf-8", errors="replace")
            if proc.returncode != 0:
                err_text = stderr.decode("utf-8", errors="replace")
                raise AgentBackendError(
                    f"exit code {proc.returncode}: {err_text[-_OUTPUT_TAIL_CHARS:].strip()}"
                )

            files = _collect_changes(staging, before)

        logger.info("Agent %s returned %d files for %s", self._name, len(files), request.phase_id)
        return AgentResult(
            agent=self._name,
            files=files,
            output=out_text[-_OUTPUT_TAIL_CHARS:],
            duration_ms=int((time.monotonic() - start) * 1000),
        )


def _snapshot(root: Path) -> dict[str, str]:
    return {
        p.relative_to(root).as_posix(): hashlib.sha256(p.read_bytes()).hexdigest()
        for p in root.rglob("*")
        if p.is_file()
    }


def _collect_changes(root: Path, before: dict[str, str]) -> list[AgentFile]:
    files: list[AgentFile] = []
    for rel_path, digest in sorted(_snapshot(root).items()):
        if before.get(rel_path) == digest:
            continue
        try:
            content = (root / rel_path).read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning("Ignoring non-text agent output %s", rel_path)
            continue
        files.append(AgentFile(path=rel_path, content=content))
    return files
