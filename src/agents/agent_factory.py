# src/agents/agent_factory.py — v1
"""Factory: instantiate an agent backend from its name.

Resolution order: registered backend names (command, anthropic), then
CLI presets from settings, then built-in CLI presets.
"""

from __future__ import annotations

import importlib
import logging
import shlex

from phasekit.agents.base_backend import BaseAgentBackend
from phasekit.config.agents import AGENT_PRESETS, BACKEND_REGISTRY
from phasekit.config.settings import ConfigurationError, Settings

logger = logging.getLogger(__name__)

_BACKEND_REGISTRY: dict[str, str] = dict(BACKEND_REGISTRY)


class UnsupportedAgentError(ConfigurationError):
    """Raised when an agent name resolves to nothing."""


def available_agents(settings: Settings | None = None) -> list[str]:
    presets = dict(AGENT_PRESETS)
    if settings is not None:
        presets.update(settings.agent_presets)
    return sorted(set(_BACKEND_REGISTRY) | set(presets))


def create_agent_backend(name: str, settings: Settings) -> BaseAgentBackend:
    """Instantiate the backend registered under name.

    Raises:
        UnsupportedAgentError: If name is neither a backend nor a preset.
        ConfigurationError: If the backend lacks required settings.
    """
    if name == "command":
        if not settings.agent_command:
            raise ConfigurationError("Agent 'command' requires PHASEKIT_AGENT_COMMAND")
        cls = _import_class(_BACKEND_REGISTRY["command"])
        return cls(argv=shlex.split(settings.agent_command), name="command")

    if name == "anthropic":
        cls = _import_class(_BACKEND_REGISTRY["anthropic"])
        return cls(
            model=settings.agent_model,
            api_key=settings.anthropic_api_key or None,
            max_tokens=settings.agent_max_tokens,
        )

    if name in _BACKEND_REGISTRY:
        cls = _import_class(_BACKEND_REGISTRY[name])
        return cls()

    argv = settings.agent_presets.get(name) or AGENT_PRESETS.get(name)
    if argv:
        cls = _import_class(_BACKEND_REGISTRY["command"])
        logger.debug("Agent %s resolved to command %s", name, argv)
        return cls(argv=list(argv), name=name)

    raise UnsupportedAgentError(
        f"Unsupported agent: {name!r}. Available: {', '.join(available_agents(settings))}"
    )


def register_backend(name: str, class_path: str) -> None:
    """Register a custom backend class (no-argument constructor).

    Args:
        name: Agent identifier.
        class_path: Fully qualified class path implementing BaseAgentBackend.
    """
    _BACKEND_REGISTRY[name] = class_path
    logger.info("Registered agent backend: %s → %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
