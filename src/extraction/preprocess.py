# src/extraction/preprocess.py — v1
"""Upload pre-processing: validate type, downscale and re-encode images.

Images are resized so the longer edge is at most IMAGE_MAX_EDGE and saved
as WEBP (JPEG when the WEBP encoder is missing). PDFs pass through
unchanged. The fingerprint is computed on the processed bytes, so the same
photo uploaded twice hashes identically.
"""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Mapping of extensions to MIME types
_MIME_MAP: dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".pdf": "application/pdf",
}

SUPPORTED_MIME_TYPES: frozenset[str] = frozenset(_MIME_MAP.values())

_PIL_FORMATS: dict[str, str] = {"image/webp": "WEBP", "image/jpeg": "JPEG"}


class UnsupportedFileType(ValueError):
    """The upload is neither a supported image nor a PDF."""

    def __init__(
        self,
        media_type: str | None,
        filename: str | None = None,
        reason: str | None = None,
    ) -> None:
        self.media_type = media_type
        self.filename = filename
        self.reason = reason
        super().__init__(
            f"Unsupported file type {media_type or 'unknown'!r}"
            + (f" for {filename!r}" if filename else "")
            + (f": {reason}" if reason else "")
        )


@dataclass(frozen=True)
class ProcessedFile:
    """Bytes actually analyzed, plus what the UI needs to preview them."""

    data: bytes
    media_type: str
    filename: str

    @property
    def size_in_bytes(self) -> int:
        return len(self.data)

    @property
    def is_image(self) -> bool:
        return self.media_type.startswith("image/")

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"


def detect_media_type(filename: str | None, declared: str | None = None) -> str | None:
    """Declared MIME type when given, else from the file extension."""
    if declared:
        return declared.lower()
    if not filename:
        return None
    return _MIME_MAP.get(Path(filename).suffix.lower())


def preprocess_upload(
    data: bytes,
    filename: str = "upload",
    media_type: str | None = None,
    max_edge: int = 1024,
    quality: int = 70,
    target_mime: str = "image/webp",
) -> ProcessedFile:
    """Validate and normalize an upload.

    Raises:
        UnsupportedFileType: For anything that is not an image or a PDF,
            including image files Pillow cannot decode.
    """
    resolved = detect_media_type(filename, media_type)
    if resolved not in SUPPORTED_MIME_TYPES:
        raise UnsupportedFileType(resolved, filename)
    if not data:
        raise UnsupportedFileType(resolved, filename)

    if not resolved.startswith("image/"):
        return ProcessedFile(data=data, media_type=resolved, filename=filename)

    from PIL import Image, ImageOps

    try:
        image = Image.open(io.BytesIO(data))
        image = ImageOps.exif_transpose(image)
        image.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)
    except (OSError, Image.DecompressionBombError) as e:
        raise UnsupportedFileType(resolved, filename, reason=f"unreadable image ({e})") from e
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    for mime in (target_mime, "image/jpeg"):
        try:
            buffer = io.BytesIO()
            image.save(buffer, format=_PIL_FORMATS[mime], quality=quality)
        except (KeyError, OSError) as e:
            logger.warning("Encoding %s as %s failed, trying JPEG: %s", filename, mime, e)
            continue
        suffix = ".webp" if mime == "image/webp" else ".jpg"
        return ProcessedFile(
            data=buffer.getvalue(),
            media_type=mime,
            filename=str(Path(filename).with_suffix(suffix).name),
        )

    # No encoder available: analyze the original bytes.
    return ProcessedFile(data=data, media_type=resolved, filename=filename)
