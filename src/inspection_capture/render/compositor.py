"""Turn raw capture bytes into an upright, bounded, watermarked raster."""

from __future__ import annotations

import logging
from io import BytesIO

from PIL import Image, UnidentifiedImageError
from PIL.Image import DecompressionBombError

from ..io.models import OrientationCode, WatermarkSpec
from .transforms import MAX_DIMENSION, apply_orientation, target_size
from .watermark import draw_watermark

logger = logging.getLogger(__name__)


class CompositingError(Exception):
    """Raised when a capture cannot be decoded or drawn on."""


def decode_rgb(image_bytes: bytes) -> Image.Image:
    """Decode *image_bytes* into an RGB Pillow image."""
    if not image_bytes:
        raise CompositingError("Empty image payload cannot be decoded")
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            img.load()
            # alpha is flattened onto white before it reaches lossy codecs
            if img.mode in {"RGBA", "LA"} or (img.mode == "P" and "transparency" in img.info):
                rgba = img.convert("RGBA")
                background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
                return Image.alpha_composite(background, rgba).convert("RGB")
            return img.convert("RGB")
    except (UnidentifiedImageError, DecompressionBombError, OSError, ValueError) as exc:
        raise CompositingError(f"Unable to decode capture: {exc}") from exc


def resize_to_bound(img: Image.Image, bound: int = MAX_DIMENSION) -> Image.Image:
    """Return *img* downscaled so that neither side exceeds *bound*."""
    width, height = target_size(img.width, img.height, bound)
    if width <= 0 or height <= 0:
        raise CompositingError(f"Invalid target dimensions {width}x{height}")
    if (width, height) == img.size:
        return img
    return img.resize((width, height), Image.Resampling.LANCZOS)


def compose(
    image_bytes: bytes,
    orientation: OrientationCode,
    watermark: WatermarkSpec,
    bound: int = MAX_DIMENSION,
) -> Image.Image:
    """Return the upright, resized capture with *watermark* burned in.

    Raises :class:`CompositingError` on undecodable input, degenerate
    dimensions or a drawing failure.
    """
    source = decode_rgb(image_bytes)
    try:
        resized = resize_to_bound(source, bound)
        upright = apply_orientation(resized, orientation)
        if resized is not source:
            resized.close()
    finally:
        source.close()

    try:
        return draw_watermark(upright, watermark)
    except (OSError, ValueError, MemoryError) as exc:
        raise CompositingError(f"Unable to draw watermark: {exc}") from exc
    finally:
        upright.close()


def probe_dimensions(image_bytes: bytes) -> tuple[int, int] | None:
    """Return the stored pixel size of *image_bytes* without decoding pixels."""
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            return img.size
    except (UnidentifiedImageError, DecompressionBombError, OSError, ValueError):
        logger.debug("Unable to probe image dimensions", exc_info=True)
        return None
