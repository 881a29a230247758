# src/pipeline/models.py — v1
"""Analysis options and the transient outcome returned to callers."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from stockscan.core.models import (
    AnalysisSource,
    DocumentType,
    RemoteAvailability,
    ScanPayload,
    payload_to_wire,
)
from stockscan.extraction.preprocess import ProcessedFile
from stockscan.quota.models import QuotaSnapshot

OutcomeStatus = Literal["OK", "NO_DATA", "QUOTA_EXHAUSTED"]

AnalysisState = Literal[
    "START",
    "CACHE_CHECK",
    "QR_ATTEMPT",
    "OCR_ATTEMPT",
    "QUOTA_CHECK",
    "REMOTE_ATTEMPT",
    "DONE",
    "DONE_DEGRADED",
]


class AnalyzeOptions(BaseModel):
    """Caller intent for one analysis."""

    allow_remote: bool = True


class AnalysisOutcome(BaseModel):
    """Result of one analysis, whichever tier produced it.

    ``hash`` is empty when the document could not be fingerprinted.
    ``states`` records the path taken through the tier state machine.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    hash: str
    doc_type: DocumentType
    data: ScanPayload
    source: AnalysisSource
    from_cache: bool = False
    used_remote: bool = False
    processed_file: ProcessedFile
    preview_data_url: str
    status: OutcomeStatus = "OK"
    quota: QuotaSnapshot | None = None
    remote_availability: RemoteAvailability | None = None
    states: list[AnalysisState] = Field(default_factory=list)

    @property
    def resets_on_label(self) -> str | None:
        """Human-readable quota reset date, when a quota snapshot is attached."""
        return self.quota.reset_label() if self.quota else None

    def summary(self) -> dict:
        """JSON-friendly view without the file bytes."""
        return {
            "hash": self.hash,
            "docType": self.doc_type,
            "status": self.status,
            "source": self.source,
            "fromCache": self.from_cache,
            "usedRemote": self.used_remote,
            "remoteAvailability": self.remote_availability,
            "quota": self.quota.model_dump() if self.quota else None,
            "resetsOnLabel": self.resets_on_label,
            "sizeInBytes": self.processed_file.size_in_bytes,
            "mediaType": self.processed_file.media_type,
            "data": payload_to_wire(self.data),
        }
