# tests/integration/test_int_pipeline.py — v1
"""End-to-end analysis over the JSON file store.

Exercises the facade with real persistence on disk: cache reuse across
process restarts (new components over the same directory), quota
accounting in the local store and audit trail contents.
"""

from __future__ import annotations

import pytest

from stockscan.api.facade import analyze, build_components
from stockscan.config.settings import Settings
from stockscan.llm.retry import RetryPolicy
from stockscan.llm.router import RemoteRouter

PAYLOAD = {
    "destination": "Municipalidad de Las Heras",
    "items": [
        {"itemName": "chapa mrz", "quantity": 15, "itemType": "CHAPA"},
        {"itemName": "modulo lm-200", "quantity": 2},
        {"itemName": "Modulo LM200", "quantity": 1},
    ],
}


@pytest.fixture
def disk_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        cache_backend="json",
        cache_root=tmp_path / "cache",
        quota_backend="local",
        quota_default_limit=3,
    )


def _components(settings, provider, qr_decoder, ocr_engine):
    return build_components(
        settings,
        remote=RemoteRouter([provider], retry_policy=RetryPolicy(max_retries=0)),
        qr_decoder=qr_decoder,
        ocr_engine=ocr_engine,
    )


class TestDiskPipeline:
    @pytest.mark.asyncio
    async def test_remote_once_then_cached(
        self, disk_settings, make_provider, qr_decoder, ocr_engine, scope, sample_pdf,
    ):
        provider = make_provider(payload=PAYLOAD)
        components = _components(disk_settings, provider, qr_decoder, ocr_engine)

        first = await analyze(sample_pdf, "OUTCOME", filename="remito.pdf", scope=scope, components=components)
        assert first.source == "remote"
        assert first.data.destination == "Municipalidad de Las Heras"
        assert [(i.item_name, i.quantity, i.item_type) for i in first.data.items] == [
            ("Chapa MRZ", 15, "CHAPA"),
            ("Modulo LM200", 3, "MODULO"),
        ]
        assert first.quota.used == 1

        # New components over the same directory: a restarted process.
        restarted = _components(disk_settings, provider, qr_decoder, ocr_engine)
        second = await analyze(sample_pdf, "OUTCOME", filename="remito.pdf", scope=scope, components=restarted)
        assert second.from_cache is True
        assert second.data == first.data
        assert provider.calls == 1

        snapshot = await restarted.ledger.get_snapshot(scope, restarted.ledger.resolve_limit(scope))
        assert (snapshot.used, snapshot.remaining) == (1, 2)

        entries = await restarted.audit_log.entries()
        assert [e.source for e in entries] == ["remote", "remote"]
        assert all(e.hash == first.hash for e in entries)

    @pytest.mark.asyncio
    async def test_quota_runs_out(
        self, disk_settings, make_provider, qr_decoder, ocr_engine, scope,
    ):
        provider = make_provider(payload=PAYLOAD)
        components = _components(disk_settings, provider, qr_decoder, ocr_engine)

        statuses = []
        for n in range(4):
            upload = b"%PDF-1.4\n% page " + str(n).encode() + b"\n%%EOF\n"
            outcome = await analyze(upload, "OUTCOME", filename=f"r{n}.pdf", scope=scope, components=components)
            statuses.append(outcome.status)

        assert statuses == ["OK", "OK", "OK", "QUOTA_EXHAUSTED"]
        assert provider.calls == 3

    @pytest.mark.asyncio
    async def test_clear_wipes_cache_and_audit(
        self, disk_settings, make_provider, qr_decoder, ocr_engine, scope, sample_pdf,
    ):
        provider = make_provider(payload=PAYLOAD)
        components = _components(disk_settings, provider, qr_decoder, ocr_engine)
        await analyze(sample_pdf, "OUTCOME", filename="remito.pdf", scope=scope, components=components)

        await components.cache.clear()

        assert await components.cache.records() == []
        assert await components.audit_log.entries() == []
        again = await analyze(sample_pdf, "OUTCOME", filename="remito.pdf", scope=scope, components=components)
        assert again.from_cache is False
        assert provider.calls == 2
