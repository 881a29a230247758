# src/cache/cache_factory.py — v3
"""Factory wiring the result cache and audit log onto one local store."""

from __future__ import annotations

from stockscan.cache.audit_log import AuditLog
from stockscan.cache.result_cache import ResultCache
from stockscan.config.settings import Settings
from stockscan.storage.base_kv_store import BaseKeyValueStore
from stockscan.storage.store_factory import create_kv_store


def create_audit_log(
    settings: Settings | None = None,
    store: BaseKeyValueStore | None = None,
) -> AuditLog:
    """Build the AuditLog on the configured (or given) store."""
    settings = settings or Settings()
    store = store or create_kv_store(settings)
    return AuditLog(store, max_entries=settings.audit_max_entries)


def create_result_cache(
    settings: Settings | None = None,
    store: BaseKeyValueStore | None = None,
    audit_log: AuditLog | None = None,
) -> ResultCache | None:
    """Build the configured ResultCache.

    Args:
        settings: Application settings. Defaults apply when None.
        store: Pre-built store to share with other components.
        audit_log: Audit log cleared together with the cache.

    Returns:
        ResultCache, or None when CACHE_ENABLED=false.
    """
    settings = settings or Settings()
    if not settings.cache_enabled:
        return None
    store = store or create_kv_store(settings)
    return ResultCache(store, ttl_ms=settings.cache_ttl_ms, audit_log=audit_log)
