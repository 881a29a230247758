# src/llm/router.py — v1
"""Ordered fallback across configured remote providers.

Each configured provider is tried in preference order, each call wrapped in
the bounded retry helper. The first success wins; when all fail, a single
RemoteProviderError carries every provider's failure.
"""

from __future__ import annotations

import logging
from typing import Any

from stockscan.core.models import DocumentType, ScanPayload
from stockscan.llm.base_client import BaseRemoteProvider
from stockscan.llm.config import PROVIDER_LABELS, ProviderPreference
from stockscan.llm.retry import RemoteRetryExhausted, RetryPolicy, with_retry

logger = logging.getLogger(__name__)


class RemoteProviderError(Exception):
    """Every configured remote provider failed, or none is usable.

    ``fallback`` is filled in by the orchestrator with the best local
    outcome so callers can still show something. Remote failures are
    transient from the caller's point of view, hence ``retryable``.
    """

    def __init__(self, message: str, errors: dict[str, str] | None = None, retryable: bool = True):
        self.errors = errors or {}
        self.retryable = retryable
        self.fallback: Any = None
        super().__init__(message)


class RemoteRouter:
    """Routes scan requests to the first provider that succeeds."""

    def __init__(
        self,
        providers: list[BaseRemoteProvider],
        preference: ProviderPreference | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._preference = preference or ProviderPreference(
            providers=tuple(p.provider_name for p in providers)
        )
        self._providers = providers
        self._retry_policy = retry_policy or RetryPolicy()
        self._last_successful: str | None = None

    @property
    def is_disabled(self) -> bool:
        return self._preference.disabled

    @property
    def configured_providers(self) -> list[BaseRemoteProvider]:
        if self.is_disabled:
            return []
        return [p for p in self._providers if p.is_configured]

    @property
    def is_configured(self) -> bool:
        return len(self.configured_providers) > 0

    @property
    def active_provider(self) -> str:
        """First provider that would be tried, or "none"."""
        if self.is_disabled:
            return "none"
        configured = self.configured_providers
        if configured:
            return configured[0].provider_name
        return self._preference.providers[0] if self._preference.providers else "none"

    @property
    def last_successful_provider(self) -> str | None:
        return self._last_successful

    @property
    def label(self) -> str:
        if self.is_disabled:
            return self._preference.label
        configured = self.configured_providers
        if configured:
            return " → ".join(PROVIDER_LABELS.get(p.provider_name, p.provider_name) for p in configured)
        if self._preference.providers:
            return self._preference.label
        return "Proveedor remoto no configurado"

    async def scan(self, doc_type: DocumentType, data: bytes, media_type: str) -> ScanPayload:
        """Run the extraction for ``doc_type`` on the first provider that succeeds.

        Raises:
            RemoteProviderError: Remote tier disabled, unconfigured, or all providers failed.
        """
        if self.is_disabled:
            raise RemoteProviderError("Remote AI provider is disabled", retryable=False)
        providers = self.configured_providers
        if not providers:
            raise RemoteProviderError("No remote AI provider is configured", retryable=False)

        errors: dict[str, str] = {}
        for provider in providers:
            call = provider.scan_control_sheet if doc_type == "CONTROL" else provider.scan_document
            try:
                result = await with_retry(
                    call, data, media_type,
                    label=f"{provider.provider_name}:{doc_type}",
                    policy=self._retry_policy,
                )
            except RemoteRetryExhausted as e:
                errors[provider.provider_name] = str(e.last_error)
                logger.warning("Remote provider %s failed: %s", provider.provider_name, e)
                continue
            self._last_successful = provider.provider_name
            logger.info("Remote provider %s answered for %s", provider.provider_name, doc_type)
            return result

        summary = " | ".join(
            f"{PROVIDER_LABELS.get(name, name)}: {message}" for name, message in errors.items()
        )
        raise RemoteProviderError(summary, errors=errors)
