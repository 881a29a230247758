# src/extraction/base_ocr_engine.py — v1
"""Abstract OCR engine interface for the local tier."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseOcrEngine(ABC):
    """Turns image bytes into raw text.

    Implementations return an empty string when nothing could be read;
    they raise only for programming errors, never for unreadable scans.
    """

    @abstractmethod
    async def recognize(self, data: bytes, media_type: str) -> str:
        """Run OCR and return the recognized text."""

    @property
    @abstractmethod
    def engine_name(self) -> str:
        """Engine identifier (tesseract, mock, ...)."""
