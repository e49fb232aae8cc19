# src/config/settings.py — v1
"""Typed configuration loaded from the environment, .env and layered files.

Settings are resolved once at startup into a frozen value that is passed
to every component. Layered configuration (global -> project -> local)
is merged key by key, later fragments overriding earlier ones.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from phasekit.core.errors import PhaseKitError
from phasekit.storage import layout

logger = logging.getLogger(__name__)

GLOBAL_CONFIG_PATH = Path("~/.config/phasekit/config.yaml")
PROJECT_CONFIG_FILE = "phasekit.yaml"
LOCAL_CONFIG_FILE = "config.local.yaml"


class ConfigurationError(PhaseKitError):
    """Raised when configuration is missing or internally inconsistent."""


class Settings(BaseSettings):
    """Application settings (PHASEKIT_* environment variables)."""

    model_config = SettingsConfigDict(
        env_prefix="PHASEKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # === Project layout ===
    project_root: Path = Path(".")
    state_dir: Path = Path(layout.DEFAULT_STATE_DIR)
    manifests_dir: Path | None = None
    archive_dir: Path | None = None
    logs_dir: Path | None = None
    state_backend: Literal["json", "sqlite"] = "json"

    # === Agents ===
    default_agent: str = ""
    agent_command: str = ""
    agent_presets: dict[str, list[str]] = {}
    agent_model: str = "claude-sonnet-4-20250514"
    agent_max_tokens: int = 16000
    anthropic_api_key: str = ""
    agent_timeout_s: float = 900.0
    agent_max_retries: int = 2

    # === Build validation ===
    build_command: str = ""
    build_timeout_s: float = 600.0

    # === Execution ===
    continue_on_error: bool = False
    max_parallel_phases: int = 1
    scan_exclude: str = ".git,node_modules,.venv,venv,__pycache__,dist,build"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: str | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    @field_validator("agent_timeout_s", "build_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator("agent_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("agent_max_retries must be >= 0")
        return v

    @field_validator("max_parallel_phases")
    @classmethod
    def validate_parallelism(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("max_parallel_phases must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Cross-field consistency rules."""
        errors: list[str] = []

        if self.default_agent == "command" and not self.agent_command:
            errors.append("DEFAULT_AGENT=command requires AGENT_COMMAND")

        for name, argv in self.agent_presets.items():
            if not argv:
                errors.append(f"Agent preset '{name}' has an empty command")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Resolved paths ---

    def _under_project(self, path: Path) -> Path:
        path = path.expanduser()
        return path if path.is_absolute() else self.project_root / path

    @property
    def resolved_state_dir(self) -> Path:
        return self._under_project(self.state_dir)

    @property
    def resolved_manifests_dir(self) -> Path:
        if self.manifests_dir is not None:
            return self._under_project(self.manifests_dir)
        return self.resolved_state_dir / "manifests"

    @property
    def resolved_archive_dir(self) -> Path:
        if self.archive_dir is not None:
            return self._under_project(self.archive_dir)
        return self.resolved_state_dir / "archive"

    @property
    def resolved_logs_dir(self) -> Path:
        if self.logs_dir is not None:
            return self._under_project(self.logs_dir)
        return self.resolved_state_dir / "logs"

    @property
    def scan_exclude_list(self) -> list[str]:
        """Parse comma-separated directory names skipped by artifact scans."""
        return [d.strip() for d in self.scan_exclude.split(",") if d.strip()]


def merge_config_fragments(fragments: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    """Merge configuration fragments in order; later keys win.

    Nested mappings are merged recursively, every other value is replaced.
    """
    merged: dict[str, Any] = {}
    for fragment in fragments:
        _merge_into(merged, fragment)
    return merged


def _merge_into(target: dict[str, Any], fragment: Mapping[str, Any]) -> None:
    for key, value in fragment.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge_into(target[key], value)
        elif isinstance(value, Mapping):
            target[key] = {}
            _merge_into(target[key], value)
        else:
            target[key] = value


def load_config_fragment(path: Path) -> dict[str, Any]:
    """Read one YAML (or JSON) configuration fragment.

    Raises:
        ConfigurationError: If the file is missing or not a mapping.
    """
    path = path.expanduser()
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid configuration file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return data


def discover_config_files(project_root: Path) -> list[Path]:
    """Existing global, project and local fragments, in merge order."""
    candidates = [
        GLOBAL_CONFIG_PATH.expanduser(),
        project_root / PROJECT_CONFIG_FILE,
        project_root / layout.DEFAULT_STATE_DIR / LOCAL_CONFIG_FILE,
    ]
    return [p for p in candidates if p.is_file()]


def load_layered_settings(
    config_files: Sequence[Path] = (),
    **overrides: object,
) -> Settings:
    """Resolve Settings from ordered fragments plus explicit overrides.

    Fragment values take precedence over environment variables; overrides
    take precedence over everything.
    """
    fragments = [load_config_fragment(p) for p in config_files]
    merged = merge_config_fragments(
        [*fragments, {k: v for k, v in overrides.items() if v is not None}]
    )
    logger.debug("Merged %d configuration fragments", len(fragments))
    return load_settings(**merged)


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment/.env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]


def require_agent(settings: Settings, agent: str | None = None) -> str:
    """Name of the agent to use, explicit choice first.

    Raises:
        ConfigurationError: If neither an explicit agent nor DEFAULT_AGENT is set.
    """
    name = agent or settings.default_agent
    if not name:
        raise ConfigurationError(
            "No agent configured: pass --agent or set PHASEKIT_DEFAULT_AGENT"
        )
    return name
