# src/cache/fingerprint.py — v3
"""Content fingerprinting for uploaded documents.

A fingerprint is the SHA-256 of the processed file bytes paired with the
document type it is analyzed as. The same bytes analyzed as INCOME and as
CONTROL are two distinct cache keys.
"""

from __future__ import annotations

import hashlib

from pydantic import BaseModel

from stockscan.core.models import DocumentType

_ALGORITHM = "sha256"
_CHUNK_SIZE = 1024 * 1024


class HashingUnavailable(Exception):
    """The runtime offers no usable SHA-256 implementation."""

    def __init__(self, algorithm: str = _ALGORITHM) -> None:
        self.algorithm = algorithm
        super().__init__(f"Hash algorithm {algorithm!r} is not available in this environment")


class Fingerprint(BaseModel):
    """Cache and dedup key for one document analyzed as one type."""

    hash: str
    doc_type: DocumentType

    @property
    def key(self) -> str:
        return f"{self.doc_type}:{self.hash}"


def hash_bytes(data: bytes) -> str:
    """Hex SHA-256 digest of raw bytes.

    Raises:
        HashingUnavailable: If no SHA-256 primitive can be constructed.
    """
    hasher = _new_hasher()
    view = memoryview(data)
    for offset in range(0, len(view), _CHUNK_SIZE):
        hasher.update(view[offset : offset + _CHUNK_SIZE])
    return hasher.hexdigest()


def compute_fingerprint(data: bytes, doc_type: DocumentType) -> Fingerprint:
    """Compute the fingerprint of a document for a given type."""
    return Fingerprint(hash=hash_bytes(data), doc_type=doc_type)


def _new_hasher():  # noqa: ANN202
    try:
        return hashlib.new(_ALGORITHM)
    except (ValueError, AttributeError) as e:
        raise HashingUnavailable(_ALGORITHM) from e
