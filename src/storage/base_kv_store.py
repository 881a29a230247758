# src/storage/base_kv_store.py — v1
"""Abstract key-value store holding JSON documents under string keys.

The result cache, the audit log and the local quota fallback all persist
through this interface, so the backing store (memory, JSON files, SQLite)
is chosen once by configuration instead of being hidden in module state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class StorageUnavailable(Exception):
    """Local persistence cannot be read or written."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Storage unavailable for {key!r}: {reason}")


class BaseKeyValueStore(ABC):
    """Unified interface for local key-value backends.

    Values are JSON-compatible Python objects (dicts, lists, scalars).
    Backends raise StorageUnavailable on I/O failures; a missing key is not
    an error and reads as None.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value for key, or None."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Removing a missing key is a no-op."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """List stored keys."""
