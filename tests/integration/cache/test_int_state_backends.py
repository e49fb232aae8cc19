# tests/integration/cache/test_int_state_backends.py — v1
"""Integration tests for the phase state backends behind the facade.

Covers: cache/cache_factory.py, cache/json_store.py, cache/sqlite_store.py
No Docker required.
"""

from __future__ import annotations

import pytest

from helpers import ScriptedAgent
from phasekit.api.facade import build_workspace, execute
from phasekit.config.settings import Settings

OUTPUTS = {"A": {"src/a.py": "a\n"}, "B": {"src/b.py": "b\n"}, "V": {"t.py": "t\n"}}


@pytest.mark.parametrize("backend", ["json", "sqlite"])
class TestStateBackends:
    @pytest.mark.asyncio
    async def test_rerun_uses_persisted_state(self, project, three_phase_manifest, backend):
        settings = Settings(project_root=project, state_backend=backend, _env_file=None)
        ws = build_workspace(settings)
        ws.manifests.save(three_phase_manifest)
        agent = ScriptedAgent(OUTPUTS)
        await execute("web", workspace=ws, agent_backend=agent)

        # A fresh workspace over the same directories sees the same state.
        again = await execute("web", workspace=build_workspace(settings), agent_backend=agent)
        assert again.summary["already_satisfied"] == 3
        assert agent.called == ["A", "B", "V"]
