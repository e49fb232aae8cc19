# src/agents/models.py — v1
"""Agent capability types: AgentRequest, AgentFile, AgentResult."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class AgentRequest(BaseModel):
    """Everything an agent needs to carry out one phase."""

    series: str
    version: str
    phase_id: str
    phase_type: str
    instruction: str
    inputs: dict[str, Any] = Field(default_factory=dict)
    project_root: Path
    context_files: dict[str, str] = Field(default_factory=dict)


class AgentFile(BaseModel):
    """One file returned by an agent, path relative to the project root."""

    path: str
    content: str


class AgentResult(BaseModel):
    """Files produced by an agent invocation."""

    agent: str
    files: list[AgentFile] = Field(default_factory=list)
    output: str = ""
    duration_ms: int = 0
