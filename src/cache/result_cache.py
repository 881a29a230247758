# src/cache/result_cache.py — v1
"""Content-addressed cache of prior analysis results.

All records live as one JSON array under a single store key. Reads prune
records older than the TTL and write the pruned set back. Storage
failures degrade the cache to a no-op; they never fail an analysis.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable

from pydantic import ValidationError

from stockscan.cache.models import CacheRecord
from stockscan.core.models import DocumentType
from stockscan.storage.base_kv_store import BaseKeyValueStore, StorageUnavailable

if TYPE_CHECKING:
    from stockscan.cache.audit_log import AuditLog

logger = logging.getLogger(__name__)

CACHE_KEY = "stockscan-scan-cache-v1"
DEFAULT_TTL_MS = 1000 * 60 * 60 * 24 * 30


def _now_ms() -> int:
    return int(time.time() * 1000)


class ResultCache:
    """Maps (hash, doc_type) to the last successful analysis result."""

    def __init__(
        self,
        store: BaseKeyValueStore,
        ttl_ms: int = DEFAULT_TTL_MS,
        audit_log: AuditLog | None = None,
        clock_ms: Callable[[], int] = _now_ms,
        key: str = CACHE_KEY,
    ) -> None:
        self._store = store
        self._ttl_ms = ttl_ms
        self._audit_log = audit_log
        self._clock_ms = clock_ms
        self._key = key

    async def get(self, hash_: str, doc_type: DocumentType) -> CacheRecord | None:
        """Return the live record for (hash, doc_type), pruning expired ones."""
        records = await self._read()
        if records is None:
            return None
        now = self._clock_ms()
        valid = [r for r in records if not r.is_expired(now, self._ttl_ms)]
        if len(valid) != len(records):
            logger.debug("Pruned %d expired cache records", len(records) - len(valid))
            await self._write(valid)
        for record in valid:
            if record.matches(hash_, doc_type):
                return record
        return None

    async def put(self, record: CacheRecord) -> None:
        """Store record, replacing any previous one with the same key."""
        records = await self._read()
        if records is None:
            return
        kept = [r for r in records if not r.matches(record.hash, record.doc_type)]
        kept.append(record)
        await self._write(kept)

    async def clear(self) -> None:
        """Wipe the cache and the audit log together."""
        try:
            await self._store.delete(self._key)
        except StorageUnavailable as e:
            logger.warning("Cache clear skipped: %s", e)
        if self._audit_log is not None:
            await self._audit_log.clear()

    @property
    def audit_log(self) -> AuditLog | None:
        return self._audit_log

    async def records(self) -> list[CacheRecord]:
        """All stored records, expired ones included."""
        return await self._read() or []

    async def _read(self) -> list[CacheRecord] | None:
        """Load the record array; None when storage is unavailable."""
        try:
            raw = await self._store.get(self._key)
        except StorageUnavailable as e:
            logger.warning("Result cache read failed, continuing uncached: %s", e)
            return None
        if not isinstance(raw, list):
            return []
        records: list[CacheRecord] = []
        for item in raw:
            try:
                records.append(CacheRecord.model_validate(item))
            except ValidationError:
                logger.debug("Skipping malformed cache record")
                continue
        return records

    async def _write(self, records: list[CacheRecord]) -> None:
        try:
            await self._store.set(self._key, [r.to_wire() for r in records])
        except StorageUnavailable as e:
            logger.warning("Result cache write failed: %s", e)
