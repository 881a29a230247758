# src/extraction/tesseract_engine.py — v1
"""Tesseract OCR engine (pytesseract + Pillow).

Languages are tried in order (default spa, then eng); the first one that
returns non-blank text wins. Tesseract runs in a worker thread because a
single page can take seconds.
"""

from __future__ import annotations

import asyncio
import io
import logging

from stockscan.extraction.base_ocr_engine import BaseOcrEngine

logger = logging.getLogger(__name__)


class TesseractOcrEngine(BaseOcrEngine):
    """Local OCR via the tesseract binary."""

    def __init__(self, languages: list[str] | None = None, psm: int = 6) -> None:
        self._languages = languages or ["spa", "eng"]
        self._psm = psm

    @property
    def engine_name(self) -> str:
        return "tesseract"

    async def recognize(self, data: bytes, media_type: str) -> str:
        if not media_type.startswith("image/"):
            logger.debug("Skipping OCR for non-image upload (%s)", media_type)
            return ""
        return await asyncio.to_thread(self._recognize_sync, data)

    def _recognize_sync(self, data: bytes) -> str:
        import pytesseract
        from PIL import Image

        image = Image.open(io.BytesIO(data))
        config = f"--psm {self._psm}"
        for lang in self._languages:
            try:
                text = pytesseract.image_to_string(image, lang=lang, config=config)
            except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
                logger.warning("Local OCR failed with language %s: %s", lang, e)
                continue
            if text and text.strip():
                return text
        return ""
