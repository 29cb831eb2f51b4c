"""Choose output format and quality for a composited raster."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Tuple

from PIL import Image, features

logger = logging.getLogger(__name__)

_MIB = 1024 * 1024

# (exclusive lower bound on source size, quality); first match wins
QUALITY_LADDER: Tuple[Tuple[int, float], ...] = (
    (4 * _MIB, 0.70),
    (2 * _MIB, 0.75),
    (1 * _MIB, 0.80),
)
DEFAULT_QUALITY = 0.85

PRIMARY_FORMAT = "WEBP"
FALLBACK_FORMAT = "JPEG"

_MIME_TYPES = {
    "WEBP": "image/webp",
    "JPEG": "image/jpeg",
}


class EncodingError(Exception):
    """Raised when no output format could encode the raster."""


@dataclass(frozen=True, slots=True)
class EncodedImage:
    data: bytes
    mime_type: str
    quality: float
    attempts: Tuple[str, ...]


def select_quality(source_size_bytes: int) -> float:
    """Return the encoder quality for a capture of *source_size_bytes*."""
    for threshold, quality in QUALITY_LADDER:
        if source_size_bytes > threshold:
            return quality
    return DEFAULT_QUALITY


def primary_format_available() -> bool:
    return bool(features.check("webp"))


def encode_as(raster: Image.Image, fmt: str, quality: float) -> bytes:
    """Encode *raster* with Pillow in *fmt* at *quality* (0-1)."""
    image = raster if raster.mode == "RGB" else raster.convert("RGB")
    buffer = BytesIO()
    options: dict[str, object] = {"quality": int(round(quality * 100))}
    if fmt == "JPEG":
        options["optimize"] = True
    elif fmt == "WEBP":
        options["method"] = 4
    image.save(buffer, format=fmt, **options)
    return buffer.getvalue()


def encode_detailed(raster: Image.Image, source_size_bytes: int) -> EncodedImage:
    """Encode *raster*, preferring WebP and falling back to JPEG.

    JPEG is used whenever WebP is unavailable, fails, or does not come out
    smaller than the original capture.
    """
    quality = select_quality(source_size_bytes)
    attempts: list[str] = []

    if primary_format_available():
        attempts.append(PRIMARY_FORMAT)
        try:
            data = encode_as(raster, PRIMARY_FORMAT, quality)
        except (OSError, ValueError, KeyError):
            logger.debug("WebP encode failed", exc_info=True)
        else:
            if len(data) < source_size_bytes:
                return EncodedImage(data, _MIME_TYPES[PRIMARY_FORMAT], quality, tuple(attempts))
            logger.debug(
                "WebP output %d bytes not smaller than source %d bytes",
                len(data),
                source_size_bytes,
            )

    attempts.append(FALLBACK_FORMAT)
    try:
        data = encode_as(raster, FALLBACK_FORMAT, quality)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodingError(f"Unable to encode raster: {exc}") from exc
    return EncodedImage(data, _MIME_TYPES[FALLBACK_FORMAT], quality, tuple(attempts))


def encode(raster: Image.Image, source_size_bytes: int) -> tuple[bytes, str]:
    """Return ``(bytes, mime_type)`` for *raster*."""
    encoded = encode_detailed(raster, source_size_bytes)
    return encoded.data, encoded.mime_type
