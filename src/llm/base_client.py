# src/llm/base_client.py — v2
"""Abstract remote provider interface.

Adapters only implement ``complete_json``; turning the provider's JSON into
payload models is shared here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from stockscan.core.models import ControlSheetRow, ScannedTransactionData
from stockscan.llm.models import RemoteResponse, decode_control_sheet, decode_transaction
from stockscan.llm.prompts import (
    CONTROL_PROMPT,
    CONTROL_SCHEMA,
    TRANSACTION_PROMPT,
    TRANSACTION_SCHEMA,
)


class BaseRemoteProvider(ABC):
    """Unified interface for vision-capable AI providers."""

    @abstractmethod
    async def complete_json(
        self,
        prompt: str,
        schema: dict[str, Any],
        schema_name: str,
        data: bytes,
        media_type: str,
    ) -> RemoteResponse:
        """Send one document with an extraction prompt, expecting JSON back."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (openai, gemini)."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials are present."""

    async def scan_document(self, data: bytes, media_type: str) -> ScannedTransactionData:
        response = await self.complete_json(
            TRANSACTION_PROMPT, TRANSACTION_SCHEMA, "TransactionExtraction", data, media_type
        )
        return decode_transaction(response.content)

    async def scan_control_sheet(self, data: bytes, media_type: str) -> list[ControlSheetRow]:
        response = await self.complete_json(
            CONTROL_PROMPT, CONTROL_SCHEMA, "ControlSheetExtraction", data, media_type
        )
        return decode_control_sheet(response.content)
