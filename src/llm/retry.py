# src/llm/retry.py — v2
"""Bounded retry with exponential backoff for remote provider calls.

One policy covers every transient error class; anything else (bad
credentials, malformed request) fails immediately.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: frozenset[str] = frozenset(
    {"rate_limit", "timeout", "server_error", "parse_error"}
)


class RemoteRetryExhausted(Exception):
    """All attempts failed for a remote call."""

    def __init__(self, label: str, error_type: str, attempts: int, last_error: Exception):
        self.label = label
        self.error_type = error_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label} failed after {attempts} attempts ({error_type}): {last_error}")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration shared by all transient error types."""

    max_retries: int = 2
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        delay = self.base_delay_s * (self.backoff_factor ** attempt)
        if self.jitter:
            delay *= 0.5 + random.random()  # noqa: S311
        return delay


def classify_error(error: Exception) -> str:
    """Classify an exception into a retry error type."""
    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "ratelimit" in name or "429" in msg or "rate limit" in msg:
        return "rate_limit"
    if "timeout" in name or "timeout" in msg or "timed out" in msg:
        return "timeout"
    if "internalserver" in name or any(c in msg for c in ("500", "502", "503", "504")):
        return "server_error"
    if "json" in msg or "decode" in name:
        return "parse_error"
    return "unknown"


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    label: str = "remote",
    policy: RetryPolicy | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async function, retrying transient failures.

    Raises:
        RemoteRetryExhausted: On a non-transient error or when retries run out.
    """
    policy = policy or RetryPolicy()
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            error_type = classify_error(e)
            attempts += 1

            if error_type not in TRANSIENT_ERRORS or attempts > policy.max_retries:
                raise RemoteRetryExhausted(label, error_type, attempts, e) from e

            delay = policy.delay_for(attempts - 1)
            logger.warning(
                "%s: %s (attempt %d/%d), retrying in %.1fs",
                label, error_type, attempts, policy.max_retries, delay,
            )
            await asyncio.sleep(delay)
