# src/quota/ledger.py — v1
"""Per-tenant monthly usage ledger for the paid remote tier.

The ledger prefers the shared transactional store. Any failure there
(network, auth, transaction abort) is logged and the same operation is
replayed against the local single-device store, so callers never see a
quota-store error. Local and shared copies are not merged automatically;
``reconcile`` does that on demand.

The ledger only reports remaining quota and degrade mode. Whether a remote call may run is decided
by the caller from the snapshot (or from ``availability``).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Callable

from stockscan.core.models import RemoteAvailability
from stockscan.quota.base_quota_store import BaseQuotaStore
from stockscan.quota.models import QuotaRecord, QuotaScope, QuotaSnapshot, RecordMutator
from stockscan.quota.periods import (
    apply_mutator,
    increment_by,
    parse_reset,
    refresh_record,
    scope_document_key,
    set_degraded,
    to_snapshot,
    unset_degraded,
)

logger = logging.getLogger(__name__)

DEFAULT_DEGRADE_REASON = "Remote analysis temporarily disabled."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuotaLedger:
    """Atomic usage counters keyed by organization, user and UTC month."""

    def __init__(
        self,
        local_store: BaseQuotaStore,
        shared_store: BaseQuotaStore | None = None,
        tz: tzinfo = timezone.utc,
        default_limit: int | None = None,
        account_limits: dict[str, int] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._local = local_store
        self._shared = shared_store
        self._tz = tz
        self._default_limit = default_limit
        self._account_limits = {k.lower(): v for k, v in (account_limits or {}).items()}
        self._clock = clock

    def resolve_limit(self, scope: QuotaScope) -> int | None:
        """Per-account limit by email, else the default. None = unlimited."""
        if scope.email and scope.email.lower() in self._account_limits:
            return self._account_limits[scope.email.lower()]
        return self._default_limit

    async def ensure_snapshot(
        self,
        scope: QuotaScope,
        limit: int | None,
        mutator: RecordMutator | None = None,
    ) -> QuotaSnapshot:
        """Read, roll over, mutate, clamp and persist the scope's record.

        Args:
            scope: Tenant the counter belongs to.
            limit: Period limit; None means unlimited (nothing is stored).
            mutator: Optional change applied inside the read-modify-write.

        Returns:
            Snapshot after the update. Never raises for store failures.
        """
        if limit is None:
            return QuotaSnapshot(used=0, remaining=None)

        now = self._clock()
        key = scope_document_key(scope, now)
        now_iso = now.astimezone(timezone.utc).isoformat()

        def _update(current: QuotaRecord | None) -> QuotaRecord:
            refreshed = refresh_record(current, scope, limit, now, self._tz)
            mutated = apply_mutator(refreshed, limit, mutator)
            mutated.updated_at = now_iso
            return mutated

        if self._shared is not None:
            try:
                record = await self._shared.transact(key, _update)
                return to_snapshot(record, self._tz)
            except Exception as e:
                logger.warning(
                    "Shared quota store (%s) failed for %s, using local store: %s",
                    self._shared.backend_name, key, e,
                )

        try:
            record = await self._local.transact(key, _update)
        except Exception as e:
            logger.warning("Local quota store failed for %s, usage not persisted: %s", key, e)
            record = _update(None)
        return to_snapshot(record, self._tz)

    async def get_snapshot(self, scope: QuotaScope, limit: int | None) -> QuotaSnapshot:
        """Current usage without changing the counter."""
        return await self.ensure_snapshot(scope, limit)

    async def record_usage(
        self,
        scope: QuotaScope,
        limit: int | None,
        amount: int = 1,
    ) -> QuotaSnapshot:
        """Add ``amount`` to the scope's usage (clamped to the limit)."""
        snapshot = await self.ensure_snapshot(scope, limit, increment_by(amount))
        logger.info(
            "Recorded %d remote use(s) for %s: %d used, %s remaining",
            amount, scope.organization_id, snapshot.used, snapshot.remaining,
        )
        return snapshot

    async def mark_degraded(
        self,
        scope: QuotaScope,
        reason: str = DEFAULT_DEGRADE_REASON,
    ) -> QuotaSnapshot:
        """Keep ``scope`` off the remote tier until cleared or the period rolls over.

        Degrade mode lives on the usage record, so an unlimited scope (which
        stores no record) cannot be degraded; the call then only logs.
        """
        limit = self.resolve_limit(scope)
        if limit is None:
            logger.warning("Cannot degrade %s: scope has no quota record", scope.organization_id)
            return QuotaSnapshot(used=0, remaining=None)
        snapshot = await self.ensure_snapshot(scope, limit, set_degraded(reason))
        logger.info("Degrade mode on for %s: %s", scope.organization_id, reason)
        return snapshot

    async def clear_degraded(self, scope: QuotaScope) -> QuotaSnapshot:
        """Leave degrade mode; usage is not touched."""
        snapshot = await self.ensure_snapshot(scope, self.resolve_limit(scope), unset_degraded)
        logger.info("Degrade mode off for %s", scope.organization_id)
        return snapshot

    async def availability(
        self,
        scope: QuotaScope | None,
        provider_configured: bool,
        allow_remote: bool = True,
    ) -> tuple[RemoteAvailability, QuotaSnapshot | None]:
        """Consolidate caller intent, provider config and quota into one value."""
        if not allow_remote:
            return "disabled", None
        if not provider_configured:
            return "not_configured", None
        if scope is None:
            return "available", None
        snapshot = await self.get_snapshot(scope, self.resolve_limit(scope))
        if snapshot.exhausted:
            return "quota_exhausted", snapshot
        if snapshot.degraded:
            return "degraded", snapshot
        return "available", snapshot

    async def reconcile(self, scope: QuotaScope, limit: int | None) -> QuotaSnapshot:
        """Merge the local fallback copy into the shared store.

        Same period: the higher ``used`` and the later ``updated_at`` win.
        A local copy from an earlier period than the shared one is dropped.
        The local copy is deleted once the merge commits.
        """
        if self._shared is None or limit is None:
            return await self.get_snapshot(scope, limit)

        now = self._clock()
        key = scope_document_key(scope, now)
        local_record = await self._local.read(key)
        if local_record is None:
            return await self.get_snapshot(scope, limit)

        now_iso = now.astimezone(timezone.utc).isoformat()
        local_fresh = refresh_record(local_record, scope, limit, now, self._tz)

        def _merge(current: QuotaRecord | None) -> QuotaRecord:
            if current is None:
                merged = local_fresh.model_copy()
            else:
                shared_fresh = refresh_record(current, scope, limit, now, self._tz)
                merged = _merge_records(shared_fresh, local_fresh)
            merged.updated_at = now_iso
            return merged

        try:
            record = await self._shared.transact(key, _merge)
        except Exception as e:
            logger.warning("Quota reconcile for %s deferred, shared store failed: %s", key, e)
            return to_snapshot(local_fresh, self._tz)

        await self._local.delete(key)
        logger.info("Reconciled local quota copy for %s (used=%d)", key, record.used)
        return to_snapshot(record, self._tz)


def _merge_records(shared: QuotaRecord, local: QuotaRecord) -> QuotaRecord:
    shared_reset = parse_reset(shared.resets_on)
    local_reset = parse_reset(local.resets_on)
    if shared_reset and local_reset and shared_reset != local_reset:
        return (shared if shared_reset > local_reset else local).model_copy()
    merged = shared.model_copy()
    merged.used = max(shared.used, local.used)
    if local.degraded and not shared.degraded:
        merged.degraded = True
        merged.degrade_reason = local.degrade_reason
    return merged
