# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
Wire-facing models serialize with camelCase aliases so stored cache,
audit and quota documents keep the format other clients read.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

DocumentType = Literal["INCOME", "OUTCOME", "CONTROL"]
AnalysisSource = Literal["qr", "ocr", "remote"]
ItemType = Literal["CHAPA", "MODULO"]

# Outcome of consolidating "provider configured" and "quota available".
RemoteAvailability = Literal[
    "available", "not_configured", "disabled", "quota_exhausted", "degraded"
]

DOCUMENT_TYPES: tuple[str, ...] = ("INCOME", "OUTCOME", "CONTROL")


class WireModel(BaseModel):
    """Base for models persisted with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# === SCANNED DATA ===


class ScannedItem(WireModel):
    """One line item read from a delivery note or invoice."""

    item_name: str = Field(alias="itemName")
    quantity: int
    item_type: ItemType = Field(default="MODULO", alias="itemType")


class ScannedTransactionData(WireModel):
    """Payload for INCOME/OUTCOME documents.

    ``destination`` is the partner name (customer for OUTCOME, supplier for
    INCOME) when one could be read.
    """

    destination: str | None = None
    items: list[ScannedItem] = Field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return len(self.items) > 0


class ControlSheetRow(WireModel):
    """One delivery row of a CONTROL sheet."""

    delivery_date: str = Field(alias="deliveryDate")
    destination: str | None = None
    model: str
    quantity: int


ScanPayload = Union[ScannedTransactionData, list[ControlSheetRow]]


def payload_has_data(payload: ScanPayload) -> bool:
    """True when a payload carries at least one item or row."""
    if isinstance(payload, ScannedTransactionData):
        return payload.has_data
    return len(payload) > 0


def empty_payload(doc_type: DocumentType) -> ScanPayload:
    """Return the empty structured result for a document type."""
    if doc_type == "CONTROL":
        return []
    return ScannedTransactionData()


def payload_to_wire(payload: ScanPayload) -> dict | list:
    if isinstance(payload, ScannedTransactionData):
        return payload.to_wire()
    return [row.to_wire() for row in payload]


def payload_from_wire(doc_type: DocumentType, raw: object) -> ScanPayload:
    """Rebuild a typed payload from its stored JSON form."""
    if doc_type == "CONTROL":
        if not isinstance(raw, list):
            raise ValueError("CONTROL payload must be a list of rows")
        return [ControlSheetRow.model_validate(row) for row in raw]
    return ScannedTransactionData.model_validate(raw)
