# src/cache/models.py — v2
"""Cache domain models: CacheRecord, AuditEntry.

Both are persisted as JSON arrays in the local key-value store, with
camelCase keys and epoch-millisecond timestamps.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from stockscan.core.models import AnalysisSource, DocumentType, WireModel


class CacheRecord(WireModel):
    """Prior analysis result for one (hash, doc_type)."""

    hash: str
    doc_type: DocumentType = Field(alias="docType")
    saved_at: int = Field(alias="savedAt")
    source: AnalysisSource
    payload: Any

    def is_expired(self, now_ms: int, ttl_ms: int) -> bool:
        return now_ms - self.saved_at > ttl_ms

    def matches(self, hash_: str, doc_type: DocumentType) -> bool:
        return self.hash == hash_ and self.doc_type == doc_type


class AuditEntry(WireModel):
    """One completed analysis, kept in a bounded ring buffer."""

    hash: str
    doc_type: DocumentType = Field(alias="docType")
    source: AnalysisSource
    saved_at: int = Field(alias="savedAt")
    size_in_bytes: int | None = Field(default=None, alias="sizeInBytes")
