"""GPS coordinates embedded in a capture's EXIF block."""

from __future__ import annotations

import asyncio
import logging
from io import BytesIO
from typing import Any, Sequence

from PIL import Image, UnidentifiedImageError

from ..geo.resolver import Position

logger = logging.getLogger(__name__)

_GPS_IFD = 0x8825
_LATITUDE_REF = 1
_LATITUDE = 2
_LONGITUDE_REF = 3
_LONGITUDE = 4


def read_gps_position(image_bytes: bytes) -> Position | None:
    """Return the EXIF GPS position of *image_bytes*, if any."""
    try:
        with Image.open(BytesIO(image_bytes)) as image:
            gps_info = image.getexif().get_ifd(_GPS_IFD)
    except (UnidentifiedImageError, OSError, ValueError):
        logger.debug("Unable to read EXIF GPS block", exc_info=True)
        return None
    if not gps_info:
        return None

    latitude = _to_degrees(gps_info.get(_LATITUDE), gps_info.get(_LATITUDE_REF))
    longitude = _to_degrees(gps_info.get(_LONGITUDE), gps_info.get(_LONGITUDE_REF))
    if latitude is None or longitude is None:
        return None
    return Position(latitude=latitude, longitude=longitude)


class ExifPositionProvider:
    """Position provider that reuses the GPS stamp written by the camera."""

    def __init__(self, image_bytes: bytes) -> None:
        self._image_bytes = image_bytes

    async def __call__(self) -> Position | None:
        return await asyncio.to_thread(read_gps_position, self._image_bytes)


def _to_degrees(values: Sequence[Any] | None, ref: Any) -> float | None:
    if not values or len(values) != 3:
        return None
    try:
        degrees, minutes, seconds = (float(value) for value in values)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    result = degrees + minutes / 60.0 + seconds / 3600.0
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if str(ref).strip().upper() in {"S", "W"}:
        result = -result
    return result
