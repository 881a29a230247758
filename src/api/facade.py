# src/api/facade.py — v2
"""Public API facade: single entry point for document analysis.

Usage:
    from stockscan.api.facade import analyze
    outcome = await analyze(file_bytes, "OUTCOME", filename="remito.jpg", scope=scope)

Every collaborator is built from Settings unless the caller injects it.
The result cache, audit log and local quota copy share one key-value store.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from stockscan.cache.audit_log import AuditLog
from stockscan.cache.cache_factory import create_audit_log, create_result_cache
from stockscan.cache.result_cache import ResultCache
from stockscan.config.settings import Settings
from stockscan.extraction.opencv_qr_decoder import OpenCvQrDecoder
from stockscan.extraction.preprocess import preprocess_upload
from stockscan.extraction.tesseract_engine import TesseractOcrEngine
from stockscan.llm.client_factory import create_remote_router
from stockscan.pipeline.models import AnalysisOutcome, AnalyzeOptions
from stockscan.pipeline.orchestrator import AnalysisOrchestrator
from stockscan.pipeline.single_flight import SingleFlight
from stockscan.quota.ledger import QuotaLedger
from stockscan.quota.quota_factory import create_quota_ledger
from stockscan.storage.store_factory import create_kv_store

if TYPE_CHECKING:
    from stockscan.core.models import DocumentType
    from stockscan.extraction.base_ocr_engine import BaseOcrEngine
    from stockscan.extraction.base_qr_decoder import BaseQrDecoder
    from stockscan.llm.router import RemoteRouter
    from stockscan.quota.base_quota_store import BaseQuotaStore
    from stockscan.quota.models import QuotaScope
    from stockscan.storage.base_kv_store import BaseKeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Wired collaborators, exposed for the CLI and for tests."""

    orchestrator: AnalysisOrchestrator
    ledger: QuotaLedger
    cache: ResultCache | None
    audit_log: AuditLog
    remote: RemoteRouter


def build_components(
    settings: Settings | None = None,
    kv_store: BaseKeyValueStore | None = None,
    shared_quota_store: BaseQuotaStore | None = None,
    remote: RemoteRouter | None = None,
    qr_decoder: BaseQrDecoder | None = None,
    ocr_engine: BaseOcrEngine | None = None,
) -> Components:
    """Wire the orchestrator and its collaborators from settings."""
    settings = settings or Settings()
    kv_store = kv_store or create_kv_store(settings)

    audit_log = create_audit_log(settings, kv_store)
    cache = create_result_cache(settings, kv_store, audit_log)
    ledger = create_quota_ledger(settings, kv_store, shared_quota_store)
    remote = remote or create_remote_router(settings)

    orchestrator = AnalysisOrchestrator(
        qr_decoder=qr_decoder or OpenCvQrDecoder(),
        ocr_engine=ocr_engine or TesseractOcrEngine(
            languages=settings.ocr_languages_list, psm=settings.ocr_psm,
        ),
        remote=remote,
        ledger=ledger,
        cache=cache,
        audit_log=audit_log,
        preprocessor=functools.partial(
            preprocess_upload,
            max_edge=settings.image_max_edge,
            quality=settings.image_quality,
            target_mime=settings.image_mime_type,
        ),
        single_flight=SingleFlight() if settings.single_flight_enabled else None,
    )
    logger.debug(
        "Components ready: cache=%s, quota=%s, remote=%s",
        settings.cache_backend if cache else "disabled", settings.quota_backend, remote.label,
    )
    return Components(
        orchestrator=orchestrator,
        ledger=ledger,
        cache=cache,
        audit_log=audit_log,
        remote=remote,
    )


async def analyze(
    file_bytes: bytes,
    doc_type: DocumentType,
    options: AnalyzeOptions | None = None,
    *,
    filename: str = "upload",
    media_type: str | None = None,
    scope: QuotaScope | None = None,
    settings: Settings | None = None,
    components: Components | None = None,
) -> AnalysisOutcome:
    """Analyze one upload end-to-end and return the outcome.

    Args:
        file_bytes: Raw upload content.
        doc_type: INCOME, OUTCOME or CONTROL.
        options: Caller intent (allow_remote). Defaults allow the remote tier.
        filename: Upload name, used to infer the media type.
        media_type: Declared MIME type; wins over the extension.
        scope: Tenant the remote usage is charged to. None = unmetered.
        settings: Global settings. Loaded from .env if None.
        components: Pre-built collaborators (reused across calls).

    Returns:
        AnalysisOutcome with payload, source, status and quota snapshot.

    Raises:
        UnsupportedFileType: Upload is neither an image nor a PDF.
        RemoteProviderError: Remote tier failed; ``fallback`` has the local outcome.
    """
    components = components or build_components(settings)
    return await components.orchestrator.analyze(
        file_bytes,
        doc_type,
        options,
        filename=filename,
        media_type=media_type,
        scope=scope,
    )

