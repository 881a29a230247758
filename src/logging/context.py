# src/logging/context.py — v1
"""Contextual logging support: attach tenant, fingerprint and tier to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per analysis request.
_organization_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "organization_id", default=None
)
_user_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "user_id", default=None
)
_fingerprint: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "fingerprint", default=None
)
_tier: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "tier", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    organization_id: str | None = None
    user_id: str | None = None
    fingerprint: str | None = None
    tier: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        organization_id=_organization_id.get(),
        user_id=_user_id.get(),
        fingerprint=_fingerprint.get(),
        tier=_tier.get(),
    )


def set_tenant_context(organization_id: str, user_id: str | None) -> None:
    """Set tenant-level context (called once per analysis request)."""
    _organization_id.set(organization_id)
    _user_id.set(user_id)


def set_document_context(fingerprint: str | None) -> None:
    """Set the fingerprint of the document being analyzed (short form)."""
    _fingerprint.set(fingerprint[:12] if fingerprint else None)


def set_tier_context(tier: str | None) -> None:
    """Set the tier currently executing (cache, qr, ocr, remote)."""
    _tier.set(tier)


def clear_context() -> None:
    """Reset all context variables."""
    _organization_id.set(None)
    _user_id.set(None)
    _fingerprint.set(None)
    _tier.set(None)
