# src/config/agents.py — v1
"""Declarative agent backend configuration.

Backends are loaded lazily from fully qualified class paths. Named CLI
agents are presets of the command backend: the instruction is written to
the agent's stdin and the agent runs inside a staging directory.
"""

from __future__ import annotations

# Backend name -> class path (dynamic import by agents/agent_factory.py).
BACKEND_REGISTRY: dict[str, str] = {
    "command": "phasekit.agents.command_backend.CommandAgentBackend",
    "anthropic": "phasekit.agents.anthropic_backend.AnthropicAgentBackend",
}

# CLI agent name -> argv. Users extend or override these via AGENT_PRESETS.
AGENT_PRESETS: dict[str, list[str]] = {
    "claude": ["claude", "-p", "--permission-mode", "acceptEdits"],
    "cursor": ["cursor-agent", "-p", "--force"],
    "copilot": ["copilot", "-p", "--allow-all-tools"],
    "gemini": ["gemini", "--yolo"],
    "codex": ["codex", "exec", "--full-auto"],
}
