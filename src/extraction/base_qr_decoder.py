# src/extraction/base_qr_decoder.py — v1
"""Abstract QR decoder interface for the QR tier."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseQrDecoder(ABC):
    """Finds a QR code in an image and returns its text, or None."""

    @abstractmethod
    async def decode(self, data: bytes, media_type: str) -> str | None:
        """Decoded QR text, or None when no readable code is present."""
