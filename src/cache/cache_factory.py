# src/cache/cache_factory.py — v3
"""Factory for phase state store instantiation."""

from __future__ import annotations

from phasekit.cache.base_cache_store import BaseStateStore
from phasekit.config.settings import Settings
from phasekit.storage import layout


def create_state_store(settings: Settings | None = None) -> BaseStateStore:
    """Instantiate the configured state backend.

    Args:
        settings: Application settings. Defaults to the JSON backend under
            ./.phasekit.

    Returns:
        Configured BaseStateStore implementation.
    """
    backend = "json" if settings is None else settings.state_backend
    state_root = (
        layout.DEFAULT_STATE_DIR if settings is None else settings.resolved_state_dir
    )

    if backend == "json":
        from phasekit.cache.json_store import JsonStateStore
        return JsonStateStore(state_root=state_root)

    if backend == "sqlite":
        from phasekit.cache.sqlite_store import SqliteStateStore
        return SqliteStateStore(db_path=layout.phase_state_db_path(state_root))

    raise ValueError(f"Unsupported state backend: {backend!r}")
