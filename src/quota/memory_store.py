# src/quota/memory_store.py — v1
"""In-process quota store (QUOTA_BACKEND=memory).

Serializes transact calls with an asyncio.Lock, which makes it atomic for
every coroutine sharing the instance. Used by tests and single-process
deployments.
"""

from __future__ import annotations

import asyncio

from stockscan.quota.base_quota_store import BaseQuotaStore, RecordUpdate
from stockscan.quota.models import QuotaRecord


class MemoryQuotaStore(BaseQuotaStore):
    """Dict-backed quota store."""

    def __init__(self) -> None:
        self._records: dict[str, QuotaRecord] = {}
        self._lock = asyncio.Lock()

    async def transact(self, key: str, update: RecordUpdate) -> QuotaRecord:
        async with self._lock:
            current = self._records.get(key)
            updated = update(current.model_copy() if current else None)
            self._records[key] = updated.model_copy()
            return updated

    async def read(self, key: str) -> QuotaRecord | None:
        record = self._records.get(key)
        return record.model_copy() if record else None

    async def delete(self, key: str) -> None:
        self._records.pop(key, None)

    @property
    def transactional(self) -> bool:
        return True

    @property
    def backend_name(self) -> str:
        return "memory"
