# src/extraction/opencv_qr_decoder.py — v1
"""QR decoder based on OpenCV's QRCodeDetector."""

from __future__ import annotations

import asyncio
import logging

from stockscan.extraction.base_qr_decoder import BaseQrDecoder

logger = logging.getLogger(__name__)


class OpenCvQrDecoder(BaseQrDecoder):
    """Decode the first QR code found in an image with cv2."""

    async def decode(self, data: bytes, media_type: str) -> str | None:
        if not media_type.startswith("image/"):
            return None
        return await asyncio.to_thread(self._decode_sync, data)

    @staticmethod
    def _decode_sync(data: bytes) -> str | None:
        import cv2
        import numpy as np

        buffer = np.frombuffer(data, dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if image is None:
            logger.debug("OpenCV could not decode the image for QR detection")
            return None
        try:
            text, points, _ = cv2.QRCodeDetector().detectAndDecode(image)
        except cv2.error as e:
            logger.debug("QR detection failed: %s", e)
            return None
        if points is None or not text:
            return None
        return text
