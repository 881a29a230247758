# tests/unit/llm/test_adapters.py — v1
"""Tests for llm/adapters/ — request shape with mocked SDK modules."""

from __future__ import annotations

import json
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from stockscan.llm.adapters.google_adapter import GoogleAdapter
from stockscan.llm.adapters.openai_adapter import OpenAIAdapter
from stockscan.llm.prompts import TRANSACTION_SCHEMA

ANSWER = json.dumps({"destination": "Acme", "items": [{"itemName": "Chapa MRZ", "quantity": 4}]})


def _fake_openai(content: str = ANSWER) -> tuple[MagicMock, AsyncMock]:
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=30),
    )
    module = MagicMock()
    create = AsyncMock(return_value=response)
    module.AsyncOpenAI.return_value.chat.completions.create = create
    return module, create


def _fake_genai(text: str = ANSWER) -> tuple[MagicMock, MagicMock]:
    response = SimpleNamespace(
        text=text,
        usage_metadata=SimpleNamespace(prompt_token_count=50, candidates_token_count=10),
    )
    genai = MagicMock()
    genai.GenerativeModel.return_value.generate_content_async = AsyncMock(return_value=response)
    google = MagicMock()
    google.generativeai = genai
    return google, genai


class TestOpenAIAdapter:
    @pytest.mark.asyncio
    async def test_image_request(self):
        module, create = _fake_openai()
        adapter = OpenAIAdapter(model="gpt-4o-mini", api_key="sk-test")
        with patch.dict(sys.modules, {"openai": module}):
            response = await adapter.complete_json(
                "prompt", TRANSACTION_SCHEMA, "TransactionExtraction", b"img", "image/webp"
            )

        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0
        assert kwargs["response_format"]["json_schema"]["name"] == "TransactionExtraction"
        part = kwargs["messages"][1]["content"][1]
        assert part["type"] == "image_url"
        assert part["image_url"]["url"].startswith("data:image/webp;base64,")
        assert response.provider == "openai"
        assert (response.input_tokens, response.output_tokens) == (120, 30)

    @pytest.mark.asyncio
    async def test_pdf_sent_as_file(self):
        module, create = _fake_openai()
        adapter = OpenAIAdapter(api_key="sk-test")
        with patch.dict(sys.modules, {"openai": module}):
            await adapter.complete_json("p", TRANSACTION_SCHEMA, "T", b"%PDF-1.4", "application/pdf")
        part = create.await_args.kwargs["messages"][1]["content"][1]
        assert part["type"] == "file"
        assert part["file"]["file_data"].startswith("data:application/pdf;base64,")

    @pytest.mark.asyncio
    async def test_scan_document_decodes(self):
        module, _ = _fake_openai()
        adapter = OpenAIAdapter(api_key="sk-test")
        with patch.dict(sys.modules, {"openai": module}):
            data = await adapter.scan_document(b"img", "image/jpeg")
        assert data.destination == "Acme"
        assert data.items[0].item_type == "CHAPA"

    def test_configured_only_with_key(self):
        assert not OpenAIAdapter().is_configured
        assert OpenAIAdapter(api_key="sk").is_configured


class TestGoogleAdapter:
    @pytest.mark.asyncio
    async def test_request(self):
        google, genai = _fake_genai()
        adapter = GoogleAdapter(model="gemini-2.5-flash", api_key="g-key")
        with patch.dict(sys.modules, {"google": google, "google.generativeai": genai}):
            response = await adapter.complete_json(
                "prompt", TRANSACTION_SCHEMA, "T", b"img", "image/webp"
            )

        genai.configure.assert_called_once_with(api_key="g-key")
        genai.GenerativeModel.assert_called_once_with("gemini-2.5-flash")
        call = genai.GenerativeModel.return_value.generate_content_async.await_args
        parts = call.args[0]
        assert parts[1]["inline_data"] == {"mime_type": "image/webp", "data": b"img"}
        assert call.kwargs["generation_config"]["response_mime_type"] == "application/json"
        assert response.provider == "gemini"
        assert response.content == ANSWER
        assert response.input_tokens == 50

    @pytest.mark.asyncio
    async def test_scan_control_sheet(self):
        rows = json.dumps([{"deliveryDate": "12/05", "model": "LM 200", "quantity": 3}])
        google, genai = _fake_genai(rows)
        adapter = GoogleAdapter(api_key="g-key")
        with patch.dict(sys.modules, {"google": google, "google.generativeai": genai}):
            result = await adapter.scan_control_sheet(b"img", "image/png")
        assert result[0].quantity == 3
