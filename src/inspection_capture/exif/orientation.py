"""Read the EXIF orientation tag straight from JPEG bytes."""

from __future__ import annotations

import logging
import struct

from ..io.models import DEFAULT_ORIENTATION, OrientationCode

logger = logging.getLogger(__name__)

_SOI = 0xFFD8
_APP1 = 0xFFE1
_SOS = 0xFFDA
_EOI = 0xFFD9
_EXIF_HEADER = b"Exif\x00\x00"
_ORIENTATION_TAG = 0x0112
_IFD_ENTRY_SIZE = 12

_BYTE_ORDERS = {b"II": "<", b"MM": ">"}


class _Abort(Exception):
    """Internal signal that the buffer cannot yield an orientation."""


def read_orientation(buffer: bytes) -> OrientationCode:
    """Return the EXIF orientation of a JPEG *buffer*.

    Never raises: a non-JPEG signature, truncated data, a malformed segment
    length or an IFD offset pointing outside the buffer all produce
    ``OrientationCode.TOP_LEFT``.
    """
    try:
        data = bytes(buffer)
        return _scan_segments(data)
    except _Abort as exc:
        logger.debug("EXIF orientation unavailable: %s", exc)
    except (struct.error, IndexError, ValueError, TypeError):
        logger.debug("EXIF orientation parse error", exc_info=True)
    return DEFAULT_ORIENTATION


def _u16(data: bytes, offset: int, order: str = ">") -> int:
    if offset < 0 or offset + 2 > len(data):
        raise _Abort(f"u16 read at {offset} beyond {len(data)} bytes")
    return struct.unpack_from(f"{order}H", data, offset)[0]


def _u32(data: bytes, offset: int, order: str) -> int:
    if offset < 0 or offset + 4 > len(data):
        raise _Abort(f"u32 read at {offset} beyond {len(data)} bytes")
    return struct.unpack_from(f"{order}I", data, offset)[0]


def _scan_segments(data: bytes) -> OrientationCode:
    if len(data) < 4 or _u16(data, 0) != _SOI:
        raise _Abort("missing JPEG start-of-image marker")

    offset = 2
    length = len(data)
    while offset + 4 <= length:
        marker = _u16(data, offset)
        if (marker & 0xFF00) != 0xFF00:
            raise _Abort(f"expected marker at {offset}, found {marker:#06x}")
        if marker in (_SOS, _EOI):
            break
        segment_length = _u16(data, offset + 2)
        if segment_length < 2:
            raise _Abort(f"invalid segment length {segment_length}")
        segment_end = offset + 2 + segment_length
        if segment_end > length:
            raise _Abort("segment runs past end of buffer")
        if marker == _APP1:
            found = _read_app1(data, offset + 4, segment_end)
            if found is not None:
                return found
        offset = segment_end

    raise _Abort("no orientation tag")


def _read_app1(data: bytes, start: int, end: int) -> OrientationCode | None:
    """Return the orientation in an APP1 segment, or ``None`` if it is not EXIF."""
    if data[start : min(start + 6, end)] != _EXIF_HEADER:
        return None
    if end - start <= 8:
        raise _Abort("EXIF segment too short")

    tiff = start + 6
    order = _BYTE_ORDERS.get(data[tiff : tiff + 2])
    if order is None:
        raise _Abort("unknown TIFF byte order")
    if _u16(data, tiff + 2, order) != 42:
        raise _Abort("bad TIFF magic")

    ifd = tiff + _u32(data, tiff + 4, order)
    if ifd + 2 > end:
        raise _Abort("IFD0 offset outside APP1 segment")
    entries = _u16(data, ifd, order)
    for index in range(entries):
        entry = ifd + 2 + index * _IFD_ENTRY_SIZE
        if entry + _IFD_ENTRY_SIZE > end:
            raise _Abort("IFD0 entry outside APP1 segment")
        if _u16(data, entry, order) == _ORIENTATION_TAG:
            return OrientationCode.coerce(_u16(data, entry + 8, order))
    raise _Abort("IFD0 has no orientation entry")
