# src/storage/store_factory.py — v1
"""Factory for local key-value store instantiation."""

from __future__ import annotations

from stockscan.config.settings import Settings
from stockscan.storage.base_kv_store import BaseKeyValueStore


def create_kv_store(settings: Settings | None = None) -> BaseKeyValueStore:
    """Instantiate the configured local store backend.

    Args:
        settings: Application settings. Defaults to the JSON backend.

    Returns:
        Configured BaseKeyValueStore implementation.
    """
    backend = "json" if settings is None else settings.cache_backend
    cache_root = "~/.stockscan/cache" if settings is None else str(settings.cache_root)

    if backend == "memory":
        from stockscan.storage.memory_store import MemoryKeyValueStore
        return MemoryKeyValueStore()

    if backend == "json":
        from stockscan.storage.json_store import JsonKeyValueStore
        return JsonKeyValueStore(root=cache_root)

    if backend == "sqlite":
        from stockscan.storage.sqlite_store import SqliteKeyValueStore
        return SqliteKeyValueStore(db_path=f"{cache_root}/stockscan.db")

    raise ValueError(f"Unsupported cache backend: {backend!r}")
