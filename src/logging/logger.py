# src/logging/logger.py — v2
"""Logger setup for the stockscan namespace.

Records are stamped with the current tenant/document/tier context by
ContextFilter at emit time, so a record formatted later (e.g. by a
rotating file handler) still carries the context it was logged under.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from stockscan.logging.context import get_context

_ROOT = "stockscan"

# Provider SDKs and Pillow log every request / plugin load at INFO or DEBUG.
_NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "openai", "google", "PIL")


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    stamped = getattr(record, "log_context", None)
    if stamped is not None:
        return stamped
    return get_context().as_dict()


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, timezone.utc)


class ContextFilter(logging.Filter):
    """Attach the logging context snapshot to each record as ``log_context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.log_context = get_context().as_dict()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _record_context(record)
        if context:
            entry["context"] = context

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Single-line human-readable format for terminals."""

    # context field -> (prefix, suffix) used when rendering it
    _MARKERS: dict[str, tuple[str, str]] = {
        "organization_id": ("<", ">"),
        "fingerprint": ("[", "]"),
        "tier": ("(", ")"),
    }

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record)
        parts = [
            _timestamp(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        for field, (left, right) in self._MARKERS.items():
            if context.get(field):
                parts.append(f"{left}{context[field]}{right}")
        parts.append(f"- {record.getMessage()}")
        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """Logger under the stockscan namespace. Configured by setup_logging()."""
    return logging.getLogger(f"{_ROOT}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """(Re)configure the stockscan logger; safe to call more than once.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        log_format: "json" or "text".
        log_file: Optional log file, rotated by size.
        rotation: Size that triggers a rotation (e.g. "10MB").
        retention: Number of rotated files kept.
    """
    logger = logging.getLogger(_ROOT)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        from stockscan.logging.handlers import create_rotating_handler

        handlers.append(create_rotating_handler(log_file, rotation=rotation, retention=retention))

    context_filter = ContextFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        logger.addHandler(handler)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
