# tests/conftest.py — v2
"""Shared test fixtures for unit and integration tests.

Provides in-memory stores, a frozen clock, a scriptable remote provider
and sample uploads. No external services; all I/O is local or mocked.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from stockscan.config.settings import Settings
from stockscan.llm.base_client import BaseRemoteProvider
from stockscan.llm.models import RemoteResponse
from stockscan.quota.models import QuotaScope
from stockscan.storage.base_kv_store import BaseKeyValueStore, StorageUnavailable
from stockscan.storage.memory_store import MemoryKeyValueStore

FROZEN_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)

SAMPLE_PDF = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << >>\n%%EOF\n"


class FakeProvider(BaseRemoteProvider):
    """Remote provider answering with a canned JSON payload (or an error)."""

    def __init__(
        self,
        name: str = "openai",
        configured: bool = True,
        payload: Any = None,
        error: Exception | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self._name = name
        self._configured = configured
        self._payload = payload
        self._error = error
        self._delay_s = delay_s
        self.calls = 0

    async def complete_json(self, prompt, schema, schema_name, data, media_type):  # noqa: ANN001
        self.calls += 1
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        if self._error is not None:
            raise self._error
        return RemoteResponse(
            content=json.dumps(self._payload),
            model="fake-model",
            provider=self._name,
            latency_ms=1,
        )

    @property
    def provider_name(self) -> str:
        return self._name

    @property
    def is_configured(self) -> bool:
        return self._configured


class FailingKeyValueStore(BaseKeyValueStore):
    """Store whose every operation reports the storage as unavailable."""

    async def get(self, key: str) -> Any | None:
        raise StorageUnavailable(key, "disk full")

    async def set(self, key: str, value: Any) -> None:
        raise StorageUnavailable(key, "disk full")

    async def delete(self, key: str) -> None:
        raise StorageUnavailable(key, "disk full")

    async def keys(self) -> list[str]:
        raise StorageUnavailable("*", "disk full")


# === FIXTURES: Configuration ===


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, cache_backend="memory")


# === FIXTURES: Stores and clocks ===


@pytest.fixture
def memory_kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def failing_kv() -> FailingKeyValueStore:
    return FailingKeyValueStore()


@pytest.fixture
def frozen_clock():
    return lambda: FROZEN_NOW


@pytest.fixture
def scope() -> QuotaScope:
    return QuotaScope(organization_id="acme", user_id="user-1", email="Ops@Acme.test")


# === FIXTURES: Tier engines ===


@pytest.fixture
def qr_decoder() -> AsyncMock:
    """QR decoder that finds nothing unless a test sets return_value."""
    decoder = AsyncMock()
    decoder.decode = AsyncMock(return_value=None)
    return decoder


@pytest.fixture
def ocr_engine() -> AsyncMock:
    """OCR engine returning empty text unless a test sets return_value."""
    engine = AsyncMock()
    engine.recognize = AsyncMock(return_value="")
    return engine


@pytest.fixture
def sample_pdf() -> bytes:
    return SAMPLE_PDF


@pytest.fixture
def make_provider():
    """Factory for FakeProvider instances."""
    return FakeProvider
