# src/llm/client_factory.py — v3
"""Factory: instantiate remote providers and the router from settings."""

from __future__ import annotations

import importlib
import logging

from stockscan.config.settings import Settings
from stockscan.llm.base_client import BaseRemoteProvider
from stockscan.llm.config import parse_provider_preference
from stockscan.llm.retry import RetryPolicy
from stockscan.llm.router import RemoteRouter

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "openai": "stockscan.llm.adapters.openai_adapter.OpenAIAdapter",
    "gemini": "stockscan.llm.adapters.google_adapter.GoogleAdapter",
}

# Provider name → (model setting, API key setting) passed to the adapter.
_PROVIDER_SETTINGS: dict[str, tuple[str, str]] = {
    "openai": ("openai_model", "openai_api_key"),
    "gemini": ("gemini_model", "gemini_api_key"),
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_remote_provider(provider: str, settings: Settings) -> BaseRemoteProvider:
    """Instantiate the adapter for ``provider`` with its key and model.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported remote provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])
    init_kwargs: dict[str, str] = {}
    if provider in _PROVIDER_SETTINGS:
        model_attr, key_attr = _PROVIDER_SETTINGS[provider]
        init_kwargs = {
            "model": getattr(settings, model_attr),
            "api_key": getattr(settings, key_attr),
        }

    logger.debug(
        "Creating remote provider: provider=%s, model=%s", provider, init_kwargs.get("model"),
    )
    return adapter_cls(**init_kwargs)


def create_remote_router(settings: Settings) -> RemoteRouter:
    """Build the router honoring AI_PROVIDER order and the retry settings."""
    preference = parse_provider_preference(settings.ai_provider_list)
    providers = [create_remote_provider(name, settings) for name in preference.providers]
    policy = RetryPolicy(
        max_retries=settings.remote_max_retries,
        base_delay_s=settings.remote_retry_base_delay_s,
        backoff_factor=settings.remote_retry_backoff_factor,
    )
    router = RemoteRouter(providers, preference=preference, retry_policy=policy)
    logger.info("Remote tier: %s", router.label)
    return router


def register_provider(
    name: str,
    class_path: str,
    model_setting: str | None = None,
    api_key_setting: str | None = None,
) -> None:
    """Register a custom provider adapter.

    With both setting names given, the adapter is built with
    ``model=settings.<model_setting>`` and ``api_key=settings.<api_key_setting>``;
    otherwise it is built without arguments and reads its own configuration.
    """
    _PROVIDER_REGISTRY[name] = class_path
    if model_setting and api_key_setting:
        _PROVIDER_SETTINGS[name] = (model_setting, api_key_setting)
    else:
        _PROVIDER_SETTINGS.pop(name, None)
    logger.info("Registered remote provider: %s → %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
