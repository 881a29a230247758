# src/quota/periods.py — v1
"""Period arithmetic and record refresh rules for the quota ledger.

Every function here is pure: the current time and timezone are passed in,
so the reset and clamp rules can be tested without a clock.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo

from stockscan.quota.models import QuotaRecord, QuotaScope, QuotaSnapshot, RecordMutator

LIMIT_REACHED_REASON = "Monthly limit reached; only QR and local OCR until the reset."


def period_key(now: datetime) -> str:
    """UTC calendar month of ``now`` as YYYYMM."""
    return now.astimezone(timezone.utc).strftime("%Y%m")


def scope_document_key(scope: QuotaScope, now: datetime) -> str:
    """``{organizationId}__{userKey}__{YYYYMM}``."""
    return f"{scope.organization_id}__{scope.user_key}__{period_key(now)}"


def compute_next_reset(reference: datetime, tz: tzinfo = timezone.utc) -> datetime:
    """First day of the month after ``reference``, at midnight in ``tz``."""
    local = reference.astimezone(tz)
    if local.month == 12:
        year, month = local.year + 1, 1
    else:
        year, month = local.year, local.month + 1
    return datetime(year, month, 1, tzinfo=tz)


def format_reset(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def parse_reset(value: str | None) -> datetime | None:
    """Parse a stored resetsOn; None when missing or unparsable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def clamp_usage(value: int, limit: int) -> int:
    """Clamp ``value`` into [0, limit]."""
    return min(max(value, 0), max(limit, 0))


def refresh_record(
    record: QuotaRecord | None,
    scope: QuotaScope,
    limit: int,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> QuotaRecord:
    """Create the record if missing and roll it over if its period ended.

    ``resets_on`` is only recomputed on creation, on rollover, or when the
    stored value cannot be parsed; it is left untouched otherwise.
    """
    if record is None:
        base = QuotaRecord(
            organization_id=scope.organization_id,
            user_id=scope.user_key,
            email=scope.email.lower() if scope.email else None,
            limit=limit,
            used=0,
            resets_on=format_reset(compute_next_reset(now, tz)),
        )
    else:
        base = record.model_copy()

    base.limit = limit
    if scope.email:
        base.email = scope.email.lower()

    reset_at = parse_reset(base.resets_on)
    if reset_at is None or now >= reset_at:
        base.used = 0
        base.resets_on = format_reset(compute_next_reset(now, tz))
        base.degraded = False
        base.degrade_reason = None

    base.used = clamp_usage(base.used, limit)
    return base


def apply_mutator(
    record: QuotaRecord,
    limit: int,
    mutator: RecordMutator | None = None,
) -> QuotaRecord:
    """Run ``mutator`` on a copy, then re-impose limit, reset date and clamp."""
    if mutator is None:
        return record
    mutated = mutator(record.model_copy(), limit)
    mutated.limit = limit
    if not mutated.resets_on:
        mutated.resets_on = record.resets_on
    mutated.used = clamp_usage(mutated.used, limit)
    return mutated


def increment_by(amount: int) -> RecordMutator:
    """Mutator adding ``amount`` to ``used`` (clamped afterwards).

    Reaching the limit also puts the record in degrade mode.
    """

    def _mutate(record: QuotaRecord, limit: int) -> QuotaRecord:
        record.used = clamp_usage(record.used + amount, limit)
        if record.used >= limit and not record.degraded:
            record.degraded = True
            record.degrade_reason = LIMIT_REACHED_REASON
        return record

    return _mutate


def set_degraded(reason: str) -> RecordMutator:
    """Mutator switching the record to degrade mode with ``reason``."""

    def _mutate(record: QuotaRecord, limit: int) -> QuotaRecord:
        record.degraded = True
        record.degrade_reason = reason
        return record

    return _mutate


def unset_degraded(record: QuotaRecord, limit: int) -> QuotaRecord:
    """Mutator leaving degrade mode."""
    record.degraded = False
    record.degrade_reason = None
    return record


def to_snapshot(record: QuotaRecord, tz: tzinfo = timezone.utc) -> QuotaSnapshot:
    used = clamp_usage(record.used, record.limit)
    reset_at = parse_reset(record.resets_on)
    return QuotaSnapshot(
        used=used,
        remaining=max(record.limit - used, 0),
        resets_on=record.resets_on,
        local_resets_on=reset_at.astimezone(tz).isoformat() if reset_at else None,
        limit=record.limit,
        degraded=record.degraded,
        degrade_reason=record.degrade_reason,
    )
