# tests/unit/pipeline/test_orchestrator.py — v1
"""Tests for pipeline/orchestrator.py — tier order, cache, quota gating."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import patch

import pytest

from stockscan.cache.audit_log import AuditLog
from stockscan.cache.fingerprint import HashingUnavailable
from stockscan.cache.result_cache import ResultCache
from stockscan.extraction.preprocess import UnsupportedFileType
from stockscan.llm.retry import RetryPolicy
from stockscan.llm.router import RemoteProviderError, RemoteRouter
from stockscan.pipeline.models import AnalyzeOptions
from stockscan.pipeline.orchestrator import AnalysisOrchestrator
from stockscan.pipeline.single_flight import SingleFlight
from stockscan.quota.ledger import QuotaLedger
from stockscan.quota.local_store import LocalQuotaStore
from stockscan.quota.memory_store import MemoryQuotaStore

REMOTE_ITEMS = {"destination": "obra norte", "items": [{"itemName": "modulo lm-200", "quantity": 6}]}
OCR_TEXT = "Chapa MRZ 15\nModulo Hex -3"


def _items(outcome) -> list[tuple[str, int]]:
    return [(i.item_name, i.quantity) for i in outcome.data.items]


@pytest.fixture
def ledger(memory_kv, frozen_clock) -> QuotaLedger:
    return QuotaLedger(
        LocalQuotaStore(memory_kv), MemoryQuotaStore(), default_limit=5, clock=frozen_clock
    )


@pytest.fixture
def build(memory_kv, qr_decoder, ocr_engine):
    """Build an orchestrator over in-memory cache and audit log."""

    def _build(provider=None, ledger=None, single_flight=None):
        audit_log = AuditLog(memory_kv)
        cache = ResultCache(memory_kv, audit_log=audit_log)
        remote = (
            RemoteRouter([provider], retry_policy=RetryPolicy(max_retries=0))
            if provider is not None else None
        )
        orchestrator = AnalysisOrchestrator(
            qr_decoder=qr_decoder,
            ocr_engine=ocr_engine,
            remote=remote,
            ledger=ledger,
            cache=cache,
            audit_log=audit_log,
            single_flight=single_flight,
        )
        return orchestrator, cache, audit_log

    return _build


class TestTierOrder:
    @pytest.mark.asyncio
    async def test_qr_wins_over_other_tiers(self, build, make_provider, qr_decoder, ocr_engine, sample_pdf):
        qr_decoder.decode.return_value = json.dumps({"items": [{"itemName": "chapa mrz", "quantity": 4}]})
        ocr_engine.recognize.return_value = "Modulo LM200 9"
        provider = make_provider(payload=REMOTE_ITEMS)
        orchestrator, _, _ = build(provider)

        outcome = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf")

        assert outcome.source == "qr"
        assert _items(outcome) == [("Chapa MRZ", 4)]
        assert outcome.states == ["START", "CACHE_CHECK", "QR_ATTEMPT", "DONE"]
        ocr_engine.recognize.assert_not_awaited()
        assert provider.calls == 0

    @pytest.mark.asyncio
    async def test_qr_without_payload_falls_to_ocr(self, build, qr_decoder, ocr_engine, sample_pdf):
        qr_decoder.decode.return_value = "https://example.com/remito/123"
        ocr_engine.recognize.return_value = OCR_TEXT
        orchestrator, _, _ = build()

        outcome = await orchestrator.analyze(sample_pdf, "INCOME", filename="doc.pdf")

        assert outcome.source == "ocr"
        assert _items(outcome) == [("Chapa MRZ", 15), ("Modulo HEX", 3)]
        assert outcome.states == ["START", "CACHE_CHECK", "QR_ATTEMPT", "OCR_ATTEMPT", "DONE"]

    @pytest.mark.asyncio
    async def test_qr_decoder_error_is_not_fatal(self, build, qr_decoder, ocr_engine, sample_pdf):
        qr_decoder.decode.side_effect = RuntimeError("decoder crashed")
        ocr_engine.recognize.return_value = OCR_TEXT
        orchestrator, _, _ = build()
        outcome = await orchestrator.analyze(sample_pdf, "INCOME", filename="doc.pdf")
        assert outcome.source == "ocr"

    @pytest.mark.asyncio
    async def test_qr_with_infinite_quantity_falls_to_ocr(self, build, qr_decoder, ocr_engine, sample_pdf):
        qr_decoder.decode.return_value = '{"items": [{"name": "Chapa MRZ", "quantity": 1e999}]}'
        ocr_engine.recognize.return_value = "Chapa MRZ 15"
        orchestrator, _, _ = build()

        outcome = await orchestrator.analyze(sample_pdf, "INCOME", filename="doc.pdf")

        assert outcome.source == "ocr"
        assert _items(outcome) == [("Chapa MRZ", 15)]

    @pytest.mark.asyncio
    async def test_qr_parser_error_falls_to_ocr(self, build, qr_decoder, ocr_engine, sample_pdf):
        qr_decoder.decode.return_value = "Chapa MRZ:4"
        ocr_engine.recognize.return_value = "Chapa MRZ 15"
        orchestrator, _, _ = build()

        with patch(
            "stockscan.pipeline.orchestrator.parse_qr_transaction",
            side_effect=OverflowError("cannot convert float infinity to integer"),
        ):
            outcome = await orchestrator.analyze(sample_pdf, "INCOME", filename="doc.pdf")

        assert outcome.source == "ocr"

    @pytest.mark.asyncio
    async def test_ocr_merges_duplicate_items(self, build, ocr_engine, sample_pdf):
        ocr_engine.recognize.return_value = "Modulo LM200 2\nmodulo lm-200 3"
        orchestrator, _, _ = build()
        outcome = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf")
        assert _items(outcome) == [("Modulo LM200", 5)]

    @pytest.mark.asyncio
    async def test_control_sheet_rows(self, build, ocr_engine, sample_pdf):
        ocr_engine.recognize.return_value = "12/05 Las Heras - lm 200 4\n13/05 LM200 3"
        orchestrator, _, _ = build()
        outcome = await orchestrator.analyze(sample_pdf, "CONTROL", filename="doc.pdf")
        assert [(r.destination, r.model, r.quantity) for r in outcome.data] == [
            ("Las Heras", "LM 200", 4),
            ("Las Heras", "LM200", 3),
        ]

    @pytest.mark.asyncio
    async def test_unsupported_upload(self, build):
        orchestrator, _, _ = build()
        with pytest.raises(UnsupportedFileType):
            await orchestrator.analyze(b"plain text", "INCOME", filename="notes.txt")

    @pytest.mark.asyncio
    async def test_corrupt_image_upload(self, build):
        orchestrator, _, _ = build()
        with pytest.raises(UnsupportedFileType):
            await orchestrator.analyze(b"not really a png", "INCOME", filename="scan.png")


class TestCache:
    @pytest.mark.asyncio
    async def test_second_upload_served_from_cache(self, build, ocr_engine, sample_pdf):
        ocr_engine.recognize.return_value = OCR_TEXT
        orchestrator, _, audit_log = build()

        first = await orchestrator.analyze(sample_pdf, "INCOME", filename="doc.pdf")
        second = await orchestrator.analyze(sample_pdf, "INCOME", filename="doc.pdf")

        assert first.from_cache is False
        assert second.from_cache is True
        assert second.source == "ocr"
        assert second.data == first.data
        assert second.hash == first.hash
        assert second.states == ["START", "CACHE_CHECK", "DONE"]
        assert ocr_engine.recognize.await_count == 1
        assert len(await audit_log.entries()) == 2

    @pytest.mark.asyncio
    async def test_cache_is_per_document_type(self, build, ocr_engine, sample_pdf):
        ocr_engine.recognize.return_value = OCR_TEXT
        orchestrator, _, _ = build()
        await orchestrator.analyze(sample_pdf, "INCOME", filename="doc.pdf")
        other = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf")
        assert other.from_cache is False

    @pytest.mark.asyncio
    async def test_remote_hit_not_charged_twice(self, build, make_provider, ledger, scope, sample_pdf):
        provider = make_provider(payload=REMOTE_ITEMS)
        orchestrator, _, _ = build(provider, ledger)

        await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope)
        cached = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope)

        assert cached.from_cache is True
        assert cached.used_remote is True
        assert provider.calls == 1
        assert (await ledger.get_snapshot(scope, 5)).used == 1

    @pytest.mark.asyncio
    async def test_hashing_unavailable_runs_uncached(self, build, ocr_engine, sample_pdf):
        ocr_engine.recognize.return_value = OCR_TEXT
        orchestrator, cache, _ = build()
        with patch(
            "stockscan.pipeline.orchestrator.compute_fingerprint",
            side_effect=HashingUnavailable(),
        ):
            first = await orchestrator.analyze(sample_pdf, "INCOME", filename="doc.pdf")
            second = await orchestrator.analyze(sample_pdf, "INCOME", filename="doc.pdf")

        assert first.hash == ""
        assert second.from_cache is False
        assert ocr_engine.recognize.await_count == 2
        assert await cache.records() == []


class TestRemoteTier:
    @pytest.mark.asyncio
    async def test_remote_consumes_one_unit(self, build, make_provider, ledger, scope, sample_pdf):
        orchestrator, _, _ = build(make_provider(payload=REMOTE_ITEMS), ledger)

        outcome = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope)

        assert outcome.source == "remote"
        assert outcome.used_remote is True
        assert outcome.status == "OK"
        assert outcome.data.destination == "obra norte"
        assert _items(outcome) == [("Modulo LM200", 6)]
        assert (outcome.quota.used, outcome.quota.remaining) == (1, 4)
        assert outcome.remote_availability == "available"
        assert outcome.states[-3:] == ["QUOTA_CHECK", "REMOTE_ATTEMPT", "DONE"]

    @pytest.mark.asyncio
    async def test_exhausted_quota_skips_remote(self, build, make_provider, ledger, scope, sample_pdf):
        await ledger.record_usage(scope, 5, 5)
        provider = make_provider(payload=REMOTE_ITEMS)
        orchestrator, cache, _ = build(provider, ledger)

        outcome = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope)

        assert provider.calls == 0
        assert outcome.status == "QUOTA_EXHAUSTED"
        assert outcome.source == "ocr"
        assert outcome.remote_availability == "quota_exhausted"
        assert outcome.quota.remaining == 0
        assert outcome.quota.resets_on == "2026-04-01T00:00:00+00:00"
        assert outcome.resets_on_label == "01/04/2026"
        assert outcome.states[-2:] == ["QUOTA_CHECK", "DONE_DEGRADED"]
        assert await cache.records() == []

    @pytest.mark.asyncio
    async def test_failure_consumes_nothing(self, build, make_provider, ledger, scope, sample_pdf):
        provider = make_provider(error=PermissionError("invalid api key"))
        orchestrator, cache, audit_log = build(provider, ledger)

        with pytest.raises(RemoteProviderError) as exc_info:
            await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope)

        fallback = exc_info.value.fallback
        assert fallback.status == "NO_DATA"
        assert fallback.source == "ocr"
        assert fallback.states[-2:] == ["REMOTE_ATTEMPT", "DONE_DEGRADED"]
        assert (await ledger.get_snapshot(scope, 5)).used == 0
        assert await cache.records() == []
        assert await audit_log.entries() == []

    @pytest.mark.asyncio
    async def test_empty_remote_answer_paid_once(self, build, make_provider, ledger, scope, sample_pdf):
        provider = make_provider(payload={"items": []})
        orchestrator, cache, _ = build(provider, ledger)

        first = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope)
        second = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope)

        assert first.status == "NO_DATA"
        assert first.used_remote is True
        assert first.quota.used == 1
        assert [r.source for r in await cache.records()] == ["remote"]

        assert second.from_cache is True
        assert second.status == "NO_DATA"
        assert second.used_remote is True
        assert second.states == ["START", "CACHE_CHECK", "DONE_DEGRADED"]
        assert provider.calls == 1
        assert (await ledger.get_snapshot(scope, 5)).used == 1

    @pytest.mark.asyncio
    async def test_degraded_scope_skips_remote(self, build, make_provider, ledger, scope, sample_pdf):
        await ledger.mark_degraded(scope, "billing review")
        provider = make_provider(payload=REMOTE_ITEMS)
        orchestrator, _, _ = build(provider, ledger)

        outcome = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope)

        assert provider.calls == 0
        assert outcome.status == "NO_DATA"
        assert outcome.remote_availability == "degraded"
        assert outcome.quota.degrade_reason == "billing review"

        await ledger.clear_degraded(scope)
        outcome = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope)
        assert outcome.source == "remote"
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_caller_disabled_remote(self, build, make_provider, ledger, scope, sample_pdf):
        provider = make_provider(payload=REMOTE_ITEMS)
        orchestrator, _, _ = build(provider, ledger)
        outcome = await orchestrator.analyze(
            sample_pdf, "OUTCOME", AnalyzeOptions(allow_remote=False), filename="doc.pdf", scope=scope,
        )
        assert outcome.status == "NO_DATA"
        assert outcome.remote_availability == "disabled"
        assert provider.calls == 0

    @pytest.mark.asyncio
    async def test_provider_not_configured(self, build, make_provider, ledger, scope, sample_pdf):
        orchestrator, _, _ = build(make_provider(configured=False), ledger)
        outcome = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope)
        assert outcome.remote_availability == "not_configured"
        assert outcome.status == "NO_DATA"

    @pytest.mark.asyncio
    async def test_no_router_no_ledger(self, build, sample_pdf):
        orchestrator, _, _ = build()
        outcome = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf")
        assert outcome.remote_availability == "not_configured"
        assert outcome.quota is None

    @pytest.mark.asyncio
    async def test_unmetered_without_scope(self, build, make_provider, ledger, sample_pdf):
        orchestrator, _, _ = build(make_provider(payload=REMOTE_ITEMS), ledger)
        outcome = await orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf")
        assert outcome.source == "remote"
        assert outcome.quota is None


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_uploads_call_remote_once(self, build, make_provider, ledger, scope, sample_pdf):
        provider = make_provider(payload=REMOTE_ITEMS, delay_s=0.2)
        orchestrator, _, _ = build(provider, ledger, single_flight=SingleFlight())

        first, second = await asyncio.gather(
            orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope),
            orchestrator.analyze(sample_pdf, "OUTCOME", filename="doc.pdf", scope=scope),
        )

        assert provider.calls == 1
        assert first.data == second.data
        assert (await ledger.get_snapshot(scope, 5)).used == 1


class TestSummary:
    @pytest.mark.asyncio
    async def test_summary_is_json_friendly(self, build, ocr_engine, sample_pdf):
        ocr_engine.recognize.return_value = OCR_TEXT
        orchestrator, _, _ = build()
        outcome = await orchestrator.analyze(sample_pdf, "INCOME", filename="doc.pdf")
        summary = outcome.summary()
        json.dumps(summary)
        assert summary["source"] == "ocr"
        assert summary["mediaType"] == "application/pdf"
        assert summary["sizeInBytes"] == len(sample_pdf)
        assert summary["data"]["items"][0] == {"itemName": "Chapa MRZ", "quantity": 15, "itemType": "CHAPA"}
        assert outcome.preview_data_url.startswith("data:application/pdf;base64,")
