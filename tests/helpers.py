# tests/helpers.py — v1
"""Builders and fakes shared by unit and integration tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from phasekit.agents.base_backend import AgentBackendError, BaseAgentBackend
from phasekit.agents.models import AgentFile, AgentRequest, AgentResult
from phasekit.core.models import Manifest, PhaseDefinition


def make_phase(
    phase_id: str,
    depends_on: tuple[str, ...] = (),
    content: str | None = None,
    **kwargs,
) -> PhaseDefinition:
    """PhaseDefinition with a default instruction mentioning its id."""
    return PhaseDefinition(
        id=phase_id,
        depends_on=depends_on,
        content=content if content is not None else f"Implement {phase_id}.\n",
        **kwargs,
    )


def make_manifest(
    phases: list[PhaseDefinition], series: str = "web", version: str = "1.0.0"
) -> Manifest:
    return Manifest(
        series=series,
        version=version,
        phases=tuple(phases),
        created_at=datetime(2026, 10, 1, tzinfo=timezone.utc),
    )


class ScriptedAgent(BaseAgentBackend):
    """Agent returning canned files per phase id and recording requests."""

    def __init__(
        self,
        outputs: dict[str, dict[str, str]] | None = None,
        failing: set[str] | None = None,
        name: str = "scripted",
    ) -> None:
        self.outputs = outputs or {}
        self.failing = failing or set()
        self.requests: list[AgentRequest] = []
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def called(self) -> list[str]:
        return [r.phase_id for r in self.requests]

    async def invoke(self, request: AgentRequest) -> AgentResult:
        self.requests.append(request)
        if request.phase_id in self.failing:
            raise AgentBackendError(f"refused {request.phase_id}")
        files = self.outputs.get(request.phase_id, {})
        return AgentResult(
            agent=self._name,
            files=[AgentFile(path=p, content=c) for p, c in files.items()],
        )


class StepClock:
    """Deterministic clock advancing one millisecond per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2026, 10, 17, 10, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._now += timedelta(milliseconds=1)
        return self._now
