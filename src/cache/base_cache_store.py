# src/cache/base_cache_store.py — v1
"""Abstract phase state store.

Keyed by (series, version, phase_id); holds the last resolved inputs of a
phase together with the fingerprint and outputs of its last successful
run. Injected into the execution engine rather than read as global state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from phasekit.core.models import PhaseStateRecord


class BaseStateStore(ABC):
    """Unified interface for phase state backends."""

    @abstractmethod
    async def get(self, series: str, version: str, phase_id: str) -> PhaseStateRecord | None:
        """Retrieve the record for one phase."""

    @abstractmethod
    async def put(self, record: PhaseStateRecord) -> None:
        """Store (upsert) a record."""

    @abstractmethod
    async def list_records(
        self, series: str, version: str | None = None
    ) -> list[PhaseStateRecord]:
        """Records of a series, optionally restricted to one version."""

    async def last_inputs(
        self, series: str, version: str, phase_id: str
    ) -> dict[str, Any]:
        """Last resolved inputs of a phase, empty if never run."""
        record = await self.get(series, version, phase_id)
        return dict(record.inputs) if record is not None else {}
