# src/agents/base_backend.py — v1
"""Abstract agent capability.

The execution engine only ever calls invoke(); it never branches on which
concrete backend is in use.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from phasekit.agents.models import AgentRequest, AgentResult


class AgentBackendError(Exception):
    """Raised by a backend when an invocation fails."""


class BaseAgentBackend(ABC):
    """Unified interface for all agent backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Agent identity recorded in provenance headers and logs."""

    @abstractmethod
    async def invoke(self, request: AgentRequest) -> AgentResult:
        """Run the instruction and return the produced files.

        Raises:
            AgentBackendError: If the agent fails.
        """
