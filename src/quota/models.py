# src/quota/models.py — v1
"""Quota domain models: QuotaScope, QuotaRecord, QuotaSnapshot."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from pydantic import BaseModel, Field

from stockscan.core.models import WireModel


class QuotaScope(BaseModel):
    """Tenant identity a usage counter is kept for."""

    organization_id: str
    user_id: str | None = None
    email: str | None = None

    @property
    def user_key(self) -> str:
        """user_id when present, else the lower-cased email, else 'anon'."""
        if self.user_id:
            return self.user_id
        if self.email:
            return self.email.lower()
        return "anon"


class QuotaRecord(WireModel):
    """Persisted usage counter for one scope and period.

    Stored with camelCase keys: organizationId, userId, email, limit, used,
    resetsOn (ISO-8601), degradeMode, degradeReason and updatedAt. A degraded
    record keeps the scope on the local tiers until it is cleared or the
    period rolls over.
    """

    organization_id: str = Field(alias="organizationId")
    user_id: str = Field(alias="userId")
    email: str | None = None
    limit: int
    used: int = 0
    resets_on: str = Field(alias="resetsOn")
    degraded: bool = Field(default=False, alias="degradeMode")
    degrade_reason: str | None = Field(default=None, alias="degradeReason")
    updated_at: str | None = Field(default=None, alias="updatedAt")


class QuotaSnapshot(BaseModel):
    """What the ledger reports to callers. remaining=None means unlimited."""

    used: int
    remaining: int | None
    resets_on: str | None = None
    # resets_on expressed in the ledger timezone
    local_resets_on: str | None = None
    limit: int | None = None
    degraded: bool = False
    degrade_reason: str | None = None

    @property
    def unlimited(self) -> bool:
        return self.remaining is None

    @property
    def exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0

    def reset_label(self) -> str | None:
        """Human-readable reset date (dd/mm/yyyy), or None when unknown."""
        value = self.local_resets_on or self.resets_on
        if not value:
            return None
        try:
            return datetime.fromisoformat(value).strftime("%d/%m/%Y")
        except ValueError:
            return value


# Applied inside the read-modify-write, e.g. to increment ``used``.
RecordMutator = Callable[[QuotaRecord, int], QuotaRecord]
