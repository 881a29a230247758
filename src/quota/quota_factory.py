# src/quota/quota_factory.py — v1
"""Factory for the quota ledger and its stores."""

from __future__ import annotations

from zoneinfo import ZoneInfo

from stockscan.config.settings import Settings
from stockscan.quota.base_quota_store import BaseQuotaStore
from stockscan.quota.ledger import QuotaLedger
from stockscan.quota.local_store import LocalQuotaStore
from stockscan.storage.base_kv_store import BaseKeyValueStore
from stockscan.storage.store_factory import create_kv_store


def create_shared_quota_store(settings: Settings) -> BaseQuotaStore | None:
    """Instantiate the shared transactional store, or None for local-only."""
    backend = settings.quota_backend

    if backend == "local":
        return None

    if backend == "memory":
        from stockscan.quota.memory_store import MemoryQuotaStore
        return MemoryQuotaStore()

    if backend == "redis":
        from stockscan.quota.redis_store import RedisQuotaStore
        if not settings.quota_redis_url:
            raise ValueError("QUOTA_REDIS_URL must be set when QUOTA_BACKEND=redis")
        return RedisQuotaStore(redis_url=settings.quota_redis_url)

    raise ValueError(f"Unsupported quota backend: {backend!r}")


def create_quota_ledger(
    settings: Settings | None = None,
    local_kv: BaseKeyValueStore | None = None,
    shared_store: BaseQuotaStore | None = None,
) -> QuotaLedger:
    """Build a QuotaLedger from settings.

    Args:
        settings: Application settings. Defaults apply when None.
        local_kv: Local key-value store for the fallback copy.
        shared_store: Pre-built shared store (overrides QUOTA_BACKEND).
    """
    settings = settings or Settings()
    local_kv = local_kv or create_kv_store(settings)
    shared = shared_store if shared_store is not None else create_shared_quota_store(settings)
    return QuotaLedger(
        local_store=LocalQuotaStore(local_kv),
        shared_store=shared,
        tz=ZoneInfo(settings.quota_timezone),
        default_limit=settings.quota_default_limit,
        account_limits=settings.quota_account_limits_map,
    )
