"""Shared fixtures: in-memory captures built with Pillow."""

from __future__ import annotations

import io
import struct

import numpy as np
import pytest
from PIL import Image

from inspection_capture.io.models import CaptureContext, RawCapture

ORIENTATION_TAG = 0x0112


def make_jpeg(
    size: tuple[int, int] = (320, 240),
    orientation: int | None = None,
    noise: bool = False,
    quality: int = 90,
    seed: int = 7,
) -> bytes:
    """Encode a JPEG of *size*, optionally noisy and tagged with *orientation*."""
    width, height = size
    if noise:
        rng = np.random.default_rng(seed)
        pixels = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
        image = Image.fromarray(pixels, mode="RGB")
    else:
        image = Image.new("RGB", size, color=(40, 120, 200))
    buffer = io.BytesIO()
    options = {"quality": quality}
    if orientation is not None:
        exif = Image.Exif()
        exif[ORIENTATION_TAG] = orientation
        options["exif"] = exif.tobytes()
    image.save(buffer, format="JPEG", **options)
    return buffer.getvalue()


def exif_app1(
    orientation: int,
    byte_order: str = "<",
    ifd_offset: int = 8,
    entry_count: int | None = None,
) -> bytes:
    """Build a minimal APP1 EXIF segment holding one orientation entry."""
    marker = b"II" if byte_order == "<" else b"MM"
    tiff = marker + struct.pack(f"{byte_order}HI", 42, ifd_offset)
    count = 1 if entry_count is None else entry_count
    ifd = struct.pack(f"{byte_order}H", count)
    ifd += struct.pack(f"{byte_order}HHIHH", ORIENTATION_TAG, 3, 1, orientation, 0)
    ifd += struct.pack(f"{byte_order}I", 0)
    body = b"Exif\x00\x00" + tiff + ifd
    return b"\xff\xe1" + struct.pack(">H", len(body) + 2) + body


def jpeg_with_segments(*segments: bytes) -> bytes:
    """Wrap *segments* between SOI and a bare EOI marker."""
    return b"\xff\xd8" + b"".join(segments) + b"\xff\xd9"


@pytest.fixture
def capture_context() -> CaptureContext:
    return CaptureContext(
        location_name="Lobby WC",
        timestamp_iso="2024-03-05T14:07:09+07:00",
        organization_id="org-1",
    )


@pytest.fixture
def rotated_capture() -> RawCapture:
    data = make_jpeg((1920, 1080), orientation=6, noise=True, quality=95)
    return RawCapture(data=data, mime_type="image/jpeg")


@pytest.fixture
def small_capture() -> RawCapture:
    data = make_jpeg((320, 240))
    return RawCapture(data=data, mime_type="image/jpeg")
