# src/build/validator_factory.py — v1
"""Factory for the build-validation capability."""

from __future__ import annotations

from phasekit.build.base_validator import BaseBuildValidator, NullBuildValidator
from phasekit.config.settings import Settings


def create_build_validator(settings: Settings | None = None) -> BaseBuildValidator:
    """Command validator when BUILD_COMMAND is set, otherwise a pass-through."""
    if settings is None or not settings.build_command.strip():
        return NullBuildValidator()

    from phasekit.build.command_validator import CommandBuildValidator

    return CommandBuildValidator(
        command=settings.build_command, timeout_s=settings.build_timeout_s
    )
