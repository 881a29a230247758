# src/pipeline/single_flight.py — v1
"""Coalesce concurrent analyses of the same document.

While one task runs the pipeline for a key, later callers for that key
await the same result instead of starting their own (and possibly paying
for a second remote call). Keys are forgotten as soon as the leader
finishes; this is not a cache.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight:
    """In-process, per-key de-duplication of concurrent coroutines."""

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Future] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    async def run(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` for ``key`` unless a run is already in flight; then join it."""
        existing = self._inflight.get(key)
        if existing is not None:
            logger.debug("Joining in-flight analysis for %s", key)
            return await asyncio.shield(existing)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await fn()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an un-joined failure is not reported twice.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)
