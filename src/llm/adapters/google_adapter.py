# src/llm/adapters/google_adapter.py — v2
"""Google Gemini adapter implementing BaseRemoteProvider.

Uses google-generativeai SDK; the document travels as inline data next to
the prompt and the response is forced to JSON.
"""

from __future__ import annotations

import time
from typing import Any

from stockscan.llm.base_client import BaseRemoteProvider
from stockscan.llm.models import RemoteResponse


class GoogleAdapter(BaseRemoteProvider):
    """Google Gemini vision adapter."""

    def __init__(self, model: str = "gemini-2.5-flash", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key

    async def complete_json(
        self,
        prompt: str,
        schema: dict[str, Any],
        schema_name: str,
        data: bytes,
        media_type: str,
    ) -> RemoteResponse:
        import google.generativeai as genai

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(self._model)

        parts: list[Any] = [
            {"text": prompt},
            {"inline_data": {"mime_type": media_type, "data": data}},
        ]

        t0 = time.monotonic()
        resp = await model.generate_content_async(
            parts,
            generation_config={"response_mime_type": "application/json", "temperature": 0},
        )
        latency = int((time.monotonic() - t0) * 1000)

        usage = getattr(resp, "usage_metadata", None)
        return RemoteResponse(
            content=resp.text or "",
            input_tokens=getattr(usage, "prompt_token_count", 0) if usage else 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) if usage else 0,
            model=self._model,
            provider="gemini",
            latency_ms=latency,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "gemini"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)
