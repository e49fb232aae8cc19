# src/storage/base_output_writer.py — v1
"""Abstract artifact writer interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseOutputWriter(ABC):
    """Unified interface for artifact storage backends.

    Paths are relative to the writer's project root.
    """

    @abstractmethod
    async def write(self, path: str, content: bytes | str) -> None:
        """Replace the content at path atomically."""

    @abstractmethod
    async def write_if_absent(self, path: str, content: bytes | str) -> bool:
        """Create path with content unless it exists. Returns True if created."""

    @abstractmethod
    async def read(self, path: str) -> bytes:
        """Read content from the given path."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if path exists."""

    @abstractmethod
    async def list_dir(self, path: str) -> list[str]:
        """List directory contents."""
