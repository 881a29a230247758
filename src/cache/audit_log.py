# src/cache/audit_log.py — v1
"""Bounded audit trail of completed analyses (oldest entries dropped)."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from stockscan.cache.models import AuditEntry
from stockscan.storage.base_kv_store import BaseKeyValueStore, StorageUnavailable

logger = logging.getLogger(__name__)

AUDIT_KEY = "stockscan-scan-audit-v1"
MAX_AUDIT_ENTRIES = 200


class AuditLog:
    """Ring buffer persisted as one JSON array, oldest first."""

    def __init__(
        self,
        store: BaseKeyValueStore,
        max_entries: int = MAX_AUDIT_ENTRIES,
        key: str = AUDIT_KEY,
    ) -> None:
        self._store = store
        self._max_entries = max_entries
        self._key = key

    async def append(self, entry: AuditEntry) -> None:
        try:
            raw = await self._store.get(self._key)
            entries = raw if isinstance(raw, list) else []
            entries.append(entry.to_wire())
            await self._store.set(self._key, entries[-self._max_entries :])
        except StorageUnavailable as e:
            logger.warning("Audit entry dropped: %s", e)

    async def entries(self) -> list[AuditEntry]:
        try:
            raw = await self._store.get(self._key)
        except StorageUnavailable as e:
            logger.warning("Audit log read failed: %s", e)
            return []
        if not isinstance(raw, list):
            return []
        result: list[AuditEntry] = []
        for item in raw:
            try:
                result.append(AuditEntry.model_validate(item))
            except ValidationError:
                continue
        return result

    async def clear(self) -> None:
        try:
            await self._store.delete(self._key)
        except StorageUnavailable as e:
            logger.warning("Audit clear skipped: %s", e)
