# src/pipeline/orchestrator.py — v2
"""Analysis orchestrator: the tiered state machine.

Drives one document through the cheapest tier that yields data:
  START → CACHE_CHECK → QR_ATTEMPT → OCR_ATTEMPT → QUOTA_CHECK → REMOTE_ATTEMPT

  - A cache hit dominates every tier.
  - A QR payload with data is authoritative.
  - OCR only counts when the local parser yields at least one item/row.
  - The remote tier runs only when the caller allows it, a provider is
    configured and the quota ledger reports quota left and no degrade mode. Only a successful
    remote response consumes quota.

Payloads are normalized before they are cached or returned. Outcomes with
data are cached, and so is an empty remote answer (a hit on it reports
NO_DATA); every returned outcome (cache hits included) is audited.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from typing import TYPE_CHECKING, Callable

from pydantic import ValidationError

from stockscan.cache.fingerprint import HashingUnavailable, compute_fingerprint
from stockscan.cache.models import AuditEntry, CacheRecord
from stockscan.core.models import (
    AnalysisSource,
    DocumentType,
    RemoteAvailability,
    ScanPayload,
    empty_payload,
    payload_from_wire,
    payload_has_data,
    payload_to_wire,
)
from stockscan.extraction.preprocess import ProcessedFile, preprocess_upload
from stockscan.llm.router import RemoteProviderError
from stockscan.logging.context import (
    set_document_context,
    set_tenant_context,
    set_tier_context,
)
from stockscan.parsing.local_parser import parse_text
from stockscan.parsing.normalization import normalize_payload
from stockscan.parsing.qr_payload import parse_qr_control, parse_qr_transaction
from stockscan.pipeline.models import (
    AnalysisOutcome,
    AnalysisState,
    AnalyzeOptions,
    OutcomeStatus,
)

if TYPE_CHECKING:
    from stockscan.cache.audit_log import AuditLog
    from stockscan.cache.result_cache import ResultCache
    from stockscan.extraction.base_ocr_engine import BaseOcrEngine
    from stockscan.extraction.base_qr_decoder import BaseQrDecoder
    from stockscan.llm.router import RemoteRouter
    from stockscan.pipeline.single_flight import SingleFlight
    from stockscan.quota.ledger import QuotaLedger
    from stockscan.quota.models import QuotaScope, QuotaSnapshot

logger = logging.getLogger(__name__)

Preprocessor = Callable[..., ProcessedFile]


def _now_ms() -> int:
    return int(time.time() * 1000)


class _Run:
    """Mutable per-analysis context threaded through the tiers."""

    def __init__(
        self,
        processed: ProcessedFile,
        hash_: str,
        doc_type: DocumentType,
        options: AnalyzeOptions,
        scope: QuotaScope | None,
    ) -> None:
        self.processed = processed
        self.hash = hash_
        self.cacheable = bool(hash_)
        self.doc_type = doc_type
        self.options = options
        self.scope = scope
        self.states: list[AnalysisState] = ["START"]

    def enter(self, state: AnalysisState) -> None:
        self.states.append(state)
        set_tier_context(state)


class AnalysisOrchestrator:
    """Tiered, cached, quota-gated document analysis.

    Args:
        qr_decoder: QR tier. None skips it.
        ocr_engine: Local OCR tier. None skips it.
        remote: Remote provider router. None means no provider configured.
        ledger: Quota ledger. None means the remote tier is not metered.
        cache: Result cache. None disables caching.
        audit_log: Audit log. None disables auditing.
        preprocessor: Upload validation and re-encoding.
        single_flight: Optional de-duplication of concurrent identical work.
    """

    def __init__(
        self,
        qr_decoder: BaseQrDecoder | None = None,
        ocr_engine: BaseOcrEngine | None = None,
        remote: RemoteRouter | None = None,
        ledger: QuotaLedger | None = None,
        cache: ResultCache | None = None,
        audit_log: AuditLog | None = None,
        preprocessor: Preprocessor | None = None,
        single_flight: SingleFlight | None = None,
        clock_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self._qr_decoder = qr_decoder
        self._ocr_engine = ocr_engine
        self._remote = remote
        self._ledger = ledger
        self._cache = cache
        self._audit_log = audit_log
        self._preprocessor = preprocessor or preprocess_upload
        self._single_flight = single_flight
        self._clock_ms = clock_ms

    async def analyze(
        self,
        file_bytes: bytes,
        doc_type: DocumentType,
        options: AnalyzeOptions | None = None,
        *,
        filename: str = "upload",
        media_type: str | None = None,
        scope: QuotaScope | None = None,
    ) -> AnalysisOutcome:
        """Analyze one upload as ``doc_type``.

        Raises:
            UnsupportedFileType: The upload is not an image or a PDF.
            RemoteProviderError: The remote tier was attempted and failed;
                ``fallback`` carries the local (empty) outcome.
        """
        options = options or AnalyzeOptions()
        if scope is not None:
            set_tenant_context(scope.organization_id, scope.user_key)

        processed = await asyncio.to_thread(
            functools.partial(self._preprocessor, file_bytes, filename, media_type)
        )

        flight_key: str | None = None
        try:
            fingerprint = await asyncio.to_thread(compute_fingerprint, processed.data, doc_type)
            hash_, flight_key = fingerprint.hash, fingerprint.key
        except HashingUnavailable as e:
            logger.warning("Fingerprinting unavailable, analyzing uncached: %s", e)
            hash_ = ""
        set_document_context(hash_ or None)

        run = _Run(processed, hash_, doc_type, options, scope)
        try:
            if self._single_flight is not None and flight_key:
                return await self._single_flight.run(
                    flight_key, functools.partial(self._run_tiers, run)
                )
            return await self._run_tiers(run)
        finally:
            set_tier_context(None)

    async def _run_tiers(self, run: _Run) -> AnalysisOutcome:
        started = time.monotonic()

        cached = await self._check_cache(run)
        if cached is not None:
            return cached

        payload = await self._attempt_qr(run)
        if payload is not None:
            return await self._finish(run, payload, "qr", started)

        payload = await self._attempt_ocr(run)
        if payload_has_data(payload):
            return await self._finish(run, payload, "ocr", started)

        run.enter("QUOTA_CHECK")
        availability, snapshot = await self._remote_availability(run)
        if availability == "quota_exhausted":
            logger.info("Remote tier skipped: quota exhausted until %s", snapshot and snapshot.resets_on)
            return await self._degraded(run, payload, "ocr", "QUOTA_EXHAUSTED", availability, snapshot)
        if availability != "available":
            logger.info("Remote tier skipped: %s", availability)
            return await self._degraded(run, payload, "ocr", "NO_DATA", availability, snapshot)

        return await self._attempt_remote(run, payload, snapshot, started)

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------

    async def _check_cache(self, run: _Run) -> AnalysisOutcome | None:
        run.enter("CACHE_CHECK")
        if self._cache is None or not run.cacheable:
            return None
        record = await self._cache.get(run.hash, run.doc_type)
        if record is None:
            return None
        try:
            payload = payload_from_wire(run.doc_type, record.payload)
        except (ValidationError, ValueError) as e:
            logger.warning("Ignoring unreadable cache record: %s", e)
            return None

        has_data = payload_has_data(payload)
        run.enter("DONE" if has_data else "DONE_DEGRADED")
        logger.info("Cache hit (source=%s)", record.source)
        await self._audit(run, record.source)
        return self._outcome(
            run, payload, record.source,
            from_cache=True, used_remote=record.source == "remote",
            status="OK" if has_data else "NO_DATA",
        )

    async def _attempt_qr(self, run: _Run) -> ScanPayload | None:
        run.enter("QR_ATTEMPT")
        if self._qr_decoder is None:
            return None
        try:
            text = await self._qr_decoder.decode(run.processed.data, run.processed.media_type)
            if not text:
                return None
            if run.doc_type == "CONTROL":
                parsed: ScanPayload | None = parse_qr_control(text)
            else:
                parsed = parse_qr_transaction(text)
        except Exception as e:
            logger.warning("QR tier failed: %s", e)
            return None
        if parsed is None or not payload_has_data(parsed):
            logger.debug("QR code found but carried no usable payload")
            return None
        return normalize_payload(parsed)

    async def _attempt_ocr(self, run: _Run) -> ScanPayload:
        run.enter("OCR_ATTEMPT")
        if self._ocr_engine is None:
            return empty_payload(run.doc_type)
        try:
            text = await self._ocr_engine.recognize(run.processed.data, run.processed.media_type)
        except Exception as e:
            logger.warning("Local OCR failed: %s", e)
            return empty_payload(run.doc_type)
        return normalize_payload(parse_text(text, run.doc_type))

    async def _remote_availability(
        self, run: _Run
    ) -> tuple[RemoteAvailability, QuotaSnapshot | None]:
        configured = self._remote is not None and self._remote.is_configured
        if self._ledger is None:
            if not run.options.allow_remote:
                return "disabled", None
            return ("available" if configured else "not_configured"), None
        return await self._ledger.availability(
            run.scope, provider_configured=configured, allow_remote=run.options.allow_remote
        )

    async def _attempt_remote(
        self,
        run: _Run,
        local_payload: ScanPayload,
        snapshot: QuotaSnapshot | None,
        started: float,
    ) -> AnalysisOutcome:
        run.enter("REMOTE_ATTEMPT")
        assert self._remote is not None
        try:
            remote_payload = await self._remote.scan(
                run.doc_type, run.processed.data, run.processed.media_type
            )
        except RemoteProviderError as e:
            logger.error("Remote analysis failed: %s", e)
            run.enter("DONE_DEGRADED")
            e.fallback = self._outcome(
                run, local_payload, "ocr", status="NO_DATA",
                quota=snapshot, remote_availability="available",
            )
            raise

        if self._ledger is not None and run.scope is not None:
            snapshot = await self._ledger.record_usage(
                run.scope, self._ledger.resolve_limit(run.scope)
            )

        payload = normalize_payload(remote_payload)
        if not payload_has_data(payload):
            # At most one paid call per fingerprint within the TTL.
            await self._store(run, payload, "remote")
            return await self._degraded(
                run, payload, "remote", "NO_DATA", "available", snapshot, used_remote=True
            )
        return await self._finish(
            run, payload, "remote", started, quota=snapshot, remote_availability="available"
        )

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _finish(
        self,
        run: _Run,
        payload: ScanPayload,
        source: AnalysisSource,
        started: float,
        quota: QuotaSnapshot | None = None,
        remote_availability: RemoteAvailability | None = None,
    ) -> AnalysisOutcome:
        run.enter("DONE")
        await self._store(run, payload, source)
        await self._audit(run, source)
        logger.info(
            "Analysis complete via %s in %.2fs", source, time.monotonic() - started,
        )
        return self._outcome(
            run, payload, source,
            used_remote=source == "remote",
            quota=quota, remote_availability=remote_availability,
        )

    async def _degraded(
        self,
        run: _Run,
        payload: ScanPayload,
        source: AnalysisSource,
        status: OutcomeStatus,
        availability: RemoteAvailability,
        snapshot: QuotaSnapshot | None,
        used_remote: bool = False,
    ) -> AnalysisOutcome:
        run.enter("DONE_DEGRADED")
        await self._audit(run, source)
        return self._outcome(
            run, payload, source,
            used_remote=used_remote, status=status,
            quota=snapshot, remote_availability=availability,
        )

    async def _store(self, run: _Run, payload: ScanPayload, source: AnalysisSource) -> None:
        if self._cache is None or not run.cacheable:
            return
        await self._cache.put(
            CacheRecord(
                hash=run.hash,
                doc_type=run.doc_type,
                saved_at=self._clock_ms(),
                source=source,
                payload=payload_to_wire(payload),
            )
        )

    async def _audit(self, run: _Run, source: AnalysisSource) -> None:
        if self._audit_log is None:
            return
        await self._audit_log.append(
            AuditEntry(
                hash=run.hash,
                doc_type=run.doc_type,
                source=source,
                saved_at=self._clock_ms(),
                size_in_bytes=run.processed.size_in_bytes,
            )
        )

    def _outcome(
        self,
        run: _Run,
        payload: ScanPayload,
        source: AnalysisSource,
        from_cache: bool = False,
        used_remote: bool = False,
        status: OutcomeStatus = "OK",
        quota: QuotaSnapshot | None = None,
        remote_availability: RemoteAvailability | None = None,
    ) -> AnalysisOutcome:
        return AnalysisOutcome(
            hash=run.hash,
            doc_type=run.doc_type,
            data=payload,
            source=source,
            from_cache=from_cache,
            used_remote=used_remote,
            processed_file=run.processed,
            preview_data_url=run.processed.to_data_url(),
            status=status,
            quota=quota,
            remote_availability=remote_availability,
            states=list(run.states),
        )
