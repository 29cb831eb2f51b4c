import struct

import pytest

from inspection_capture.exif.orientation import read_orientation
from inspection_capture.io.models import OrientationCode

from .conftest import exif_app1, jpeg_with_segments, make_jpeg


@pytest.mark.parametrize("code", range(1, 9))
def test_reads_pillow_written_orientation(code):
    data = make_jpeg((32, 16), orientation=code)
    assert read_orientation(data) == OrientationCode(code)


@pytest.mark.parametrize("byte_order", ["<", ">"])
def test_reads_both_byte_orders(byte_order):
    data = jpeg_with_segments(exif_app1(6, byte_order=byte_order))
    assert read_orientation(data) == OrientationCode.RIGHT_TOP


def test_skips_non_exif_app1_and_other_segments():
    app0 = b"\xff\xe0" + struct.pack(">H", 16) + b"JFIF\x00" + bytes(9)
    xmp = b"\xff\xe1" + struct.pack(">H", 20) + b"http://ns.adobe/" + bytes(2)
    data = jpeg_with_segments(app0, xmp, exif_app1(8))
    assert read_orientation(data) == OrientationCode.LEFT_BOTTOM


def test_short_non_exif_app1_does_not_hide_later_exif():
    short = b"\xff\xe1" + struct.pack(">H", 6) + b"abcd"
    data = jpeg_with_segments(short, exif_app1(6))
    assert read_orientation(data) == OrientationCode.RIGHT_TOP


def test_short_exif_app1_defaults():
    short = b"\xff\xe1" + struct.pack(">H", 8) + b"Exif\x00\x00"
    data = jpeg_with_segments(short, exif_app1(6))
    assert read_orientation(data) == OrientationCode.TOP_LEFT


def test_plain_jpeg_without_exif_is_upright():
    assert read_orientation(make_jpeg((16, 16))) == OrientationCode.TOP_LEFT


@pytest.mark.parametrize(
    "buffer",
    [
        b"",
        b"\xff",
        b"\x89PNG\r\n\x1a\n" + bytes(32),
        b"GIF89a" + bytes(32),
        b"\xff\xd8",
    ],
)
def test_non_jpeg_or_tiny_buffers_default(buffer):
    assert read_orientation(buffer) == OrientationCode.TOP_LEFT


def test_truncated_segment_defaults():
    segment = exif_app1(6)
    data = b"\xff\xd8" + segment[: len(segment) // 2]
    assert read_orientation(data) == OrientationCode.TOP_LEFT


def test_invalid_segment_length_defaults():
    data = b"\xff\xd8\xff\xe1\x00\x01" + bytes(40)
    assert read_orientation(data) == OrientationCode.TOP_LEFT


def test_ifd_offset_outside_buffer_defaults():
    data = jpeg_with_segments(exif_app1(6, ifd_offset=0xFFFF))
    assert read_orientation(data) == OrientationCode.TOP_LEFT


def test_entry_count_past_segment_defaults():
    data = jpeg_with_segments(exif_app1(3, entry_count=500))
    # the first entry is in bounds and matches before the overrun is reached
    assert read_orientation(data) == OrientationCode.BOTTOM_RIGHT


def test_unknown_orientation_value_defaults():
    data = jpeg_with_segments(exif_app1(42))
    assert read_orientation(data) == OrientationCode.TOP_LEFT


def test_orientation_after_start_of_scan_is_ignored():
    sos = b"\xff\xda" + struct.pack(">H", 4) + bytes(2)
    data = b"\xff\xd8" + sos + exif_app1(6) + b"\xff\xd9"
    assert read_orientation(data) == OrientationCode.TOP_LEFT

