# src/llm/adapters/openai_adapter.py — v2
"""OpenAI adapter implementing BaseRemoteProvider.

Uses the official openai SDK with a strict JSON-schema response format.
PDFs are sent as file parts, images as data URLs.
"""

from __future__ import annotations

import base64
import time
from typing import Any

from stockscan.llm.base_client import BaseRemoteProvider
from stockscan.llm.models import RemoteResponse
from stockscan.llm.prompts import USER_INSTRUCTION


class OpenAIAdapter(BaseRemoteProvider):
    """OpenAI GPT vision adapter."""

    def __init__(self, model: str = "gpt-4o-mini", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key
        self._timeout_s = float(kwargs.get("timeout_s", 60.0))

    async def complete_json(
        self,
        prompt: str,
        schema: dict[str, Any],
        schema_name: str,
        data: bytes,
        media_type: str,
    ) -> RemoteResponse:
        import openai

        client = openai.AsyncOpenAI(api_key=self._api_key, timeout=self._timeout_s)
        b64 = base64.b64encode(data).decode()
        if media_type == "application/pdf":
            document_part: dict[str, Any] = {
                "type": "file",
                "file": {
                    "filename": "document.pdf",
                    "file_data": f"data:{media_type};base64,{b64}",
                },
            }
        else:
            document_part = {
                "type": "image_url",
                "image_url": {"url": f"data:{media_type};base64,{b64}"},
            }

        t0 = time.monotonic()
        resp = await client.chat.completions.create(
            model=self._model,
            temperature=0,
            response_format={
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema},
            },
            messages=[
                {"role": "system", "content": prompt},
                {
                    "role": "user",
                    "content": [{"type": "text", "text": USER_INSTRUCTION}, document_part],
                },
            ],
        )
        latency = int((time.monotonic() - t0) * 1000)

        choice = resp.choices[0]
        usage = resp.usage
        return RemoteResponse(
            content=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=self._model,
            provider="openai",
            latency_ms=latency,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)
