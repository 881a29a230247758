# src/quota/local_store.py — v1
"""Single-device quota store on top of the local key-value store.

All scopes share one JSON object under one key. There is no protection
against other devices or processes writing the same counters: this store
is the degraded fallback used while the shared store is unreachable.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from stockscan.quota.base_quota_store import BaseQuotaStore, RecordUpdate
from stockscan.quota.models import QuotaRecord
from stockscan.storage.base_kv_store import BaseKeyValueStore

logger = logging.getLogger(__name__)

QUOTA_KEY = "stockscan-quota-v1"


class LocalQuotaStore(BaseQuotaStore):
    """Non-transactional quota store; StorageUnavailable propagates."""

    def __init__(self, store: BaseKeyValueStore, key: str = QUOTA_KEY) -> None:
        self._store = store
        self._key = key

    async def transact(self, key: str, update: RecordUpdate) -> QuotaRecord:
        records = await self._load()
        updated = update(self._parse(key, records.get(key)))
        records[key] = updated.to_wire()
        await self._store.set(self._key, records)
        return updated

    async def read(self, key: str) -> QuotaRecord | None:
        records = await self._load()
        return self._parse(key, records.get(key))

    async def delete(self, key: str) -> None:
        records = await self._load()
        if records.pop(key, None) is not None:
            await self._store.set(self._key, records)

    @property
    def transactional(self) -> bool:
        return False

    @property
    def backend_name(self) -> str:
        return "local"

    async def _load(self) -> dict:
        raw = await self._store.get(self._key)
        return raw if isinstance(raw, dict) else {}

    @staticmethod
    def _parse(key: str, raw: object) -> QuotaRecord | None:
        if raw is None:
            return None
        try:
            return QuotaRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding malformed local quota record %s: %s", key, e)
            return None
