# src/storage/memory_store.py — v1
"""In-process key-value store (CACHE_BACKEND=memory). Used by tests."""

from __future__ import annotations

import copy
from typing import Any

from stockscan.storage.base_kv_store import BaseKeyValueStore


class MemoryKeyValueStore(BaseKeyValueStore):
    """Dict-backed store. Values are deep-copied so callers never share state."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    async def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self) -> list[str]:
        return sorted(self._data)
