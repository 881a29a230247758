# src/quota/redis_store.py — v1
"""Redis-based quota store (QUOTA_BACKEND=redis).

Requires 'redis' package: pip install redis.
The read-modify-write runs inside WATCH/MULTI/EXEC; redis-py retries the
callable when another client modifies the key between WATCH and EXEC, so
concurrent increments from several devices are never lost.
"""

from __future__ import annotations

import asyncio
import logging

from stockscan.quota.base_quota_store import (
    BaseQuotaStore,
    RecordUpdate,
    RemoteStoreUnreachable,
)
from stockscan.quota.models import QuotaRecord

logger = logging.getLogger(__name__)

_KEY_PREFIX = "stockscan:quota:"


class RedisQuotaStore(BaseQuotaStore):
    """Redis-backed, transactional quota store shared by all devices."""

    def __init__(self, redis_url: str, socket_timeout_s: float = 5.0) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout_s,
            socket_connect_timeout=socket_timeout_s,
        )
        self._errors: tuple[type[BaseException], ...] = (redis.RedisError, OSError)

    async def transact(self, key: str, update: RecordUpdate) -> QuotaRecord:
        redis_key = f"{_KEY_PREFIX}{key}"

        def _apply(pipe) -> QuotaRecord:  # noqa: ANN001
            raw = pipe.get(redis_key)
            current = QuotaRecord.model_validate_json(raw) if raw else None
            updated = update(current)
            pipe.multi()
            pipe.set(redis_key, updated.model_dump_json(by_alias=True, exclude_none=True))
            return updated

        try:
            return await asyncio.to_thread(
                self._client.transaction, _apply, redis_key, value_from_callable=True
            )
        except self._errors as e:
            raise RemoteStoreUnreachable("redis", str(e)) from e

    async def read(self, key: str) -> QuotaRecord | None:
        try:
            raw = await asyncio.to_thread(self._client.get, f"{_KEY_PREFIX}{key}")
        except self._errors as e:
            raise RemoteStoreUnreachable("redis", str(e)) from e
        if raw is None:
            return None
        return QuotaRecord.model_validate_json(raw)

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._client.delete, f"{_KEY_PREFIX}{key}")
        except self._errors as e:
            raise RemoteStoreUnreachable("redis", str(e)) from e

    @property
    def transactional(self) -> bool:
        return True

    @property
    def backend_name(self) -> str:
        return "redis"

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()
