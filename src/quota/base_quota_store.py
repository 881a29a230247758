# src/quota/base_quota_store.py — v1
"""Abstract quota store: atomic read-modify-write of one QuotaRecord."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from stockscan.quota.models import QuotaRecord

RecordUpdate = Callable[[QuotaRecord | None], QuotaRecord]


class RemoteStoreUnreachable(Exception):
    """The shared quota store could not be reached or the transaction failed."""

    def __init__(self, backend: str, reason: str) -> None:
        self.backend = backend
        self.reason = reason
        super().__init__(f"Quota store {backend!r} unreachable: {reason}")


class BaseQuotaStore(ABC):
    """Unified interface for quota backends."""

    @abstractmethod
    async def transact(self, key: str, update: RecordUpdate) -> QuotaRecord:
        """Read the record at key, apply update and persist the result.

        Transactional backends guarantee that no concurrent transact on the
        same key interleaves between the read and the write.
        """

    @abstractmethod
    async def read(self, key: str) -> QuotaRecord | None:
        """Return the stored record without modifying it."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the record at key."""

    @property
    @abstractmethod
    def transactional(self) -> bool:
        """Whether transact is atomic across processes/devices."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Backend identifier (memory, local, redis)."""
