# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides a fully wired workspace rooted in a temp directory, a scripted
agent backend and sample manifests. No network, no real agents.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from helpers import ScriptedAgent, make_manifest, make_phase
from phasekit.agents.base_backend import BaseAgentBackend
from phasekit.api.facade import Workspace, build_workspace
from phasekit.config.settings import Settings
from phasekit.core.models import Manifest, PhaseDefinition, PhaseInput, PhaseType
from phasekit.engine.executor import ExecutionEngine


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def settings(project: Path) -> Settings:
    return Settings(project_root=project, _env_file=None)


@pytest.fixture
def workspace(settings: Settings) -> Workspace:
    return build_workspace(settings)


@pytest.fixture
def agent() -> ScriptedAgent:
    return ScriptedAgent()


@pytest.fixture
def engine_factory(workspace: Workspace) -> Callable[..., ExecutionEngine]:
    """Build an ExecutionEngine over the workspace stores."""

    def _make(agent: BaseAgentBackend | None = None, **kwargs) -> ExecutionEngine:
        kwargs.setdefault("build_validator", workspace.build_validator)
        return ExecutionEngine(
            project_root=workspace.project_root,
            state_store=workspace.state_store,
            archive=workspace.archive,
            agent=agent,
            **kwargs,
        )

    return _make


@pytest.fixture
def three_phase_manifest() -> Manifest:
    """A -> B -> V (V verifies B)."""
    return make_manifest(
        [
            make_phase("A", produces=("src/a.py",)),
            make_phase("B", ("A",)),
            make_phase("V", ("B",), type=PhaseType.VERIFICATION),
        ]
    )


@pytest.fixture
def input_phase() -> PhaseDefinition:
    return make_phase(
        "P01",
        content="Create the {{ module }} module with {{ count }} handlers.\n",
        inputs=(
            PhaseInput(name="module", type="string"),
            PhaseInput(name="count", type="integer", required=False, default=2),
        ),
    )
