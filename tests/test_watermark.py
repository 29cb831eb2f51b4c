import numpy as np
import pytest
from PIL import Image

from inspection_capture.io.models import AddressDetails, CaptureContext, GeolocationFix, WatermarkSpec
from inspection_capture.render.watermark import (
    build_watermark,
    draw_watermark,
    font_metrics,
    format_timestamp,
    layout_watermark,
    load_font,
)

CONTEXT = CaptureContext(location_name="Gate 3 Restroom", timestamp_iso="2024-01-31T08:05:00")


def test_format_timestamp_day_first():
    assert format_timestamp("2024-01-31T08:05:09") == "31/01/2024 08:05:09"


def test_format_timestamp_keeps_unparseable_text():
    assert format_timestamp("yesterday") == "yesterday"


def test_lines_with_address():
    fix = GeolocationFix(
        -6.2,
        106.8,
        address=AddressDetails(road="Jl. Sudirman", district="Tanah Abang", city="Jakarta"),
    )
    spec = build_watermark(CONTEXT, fix, "ACME")
    assert spec.lines == (
        "Gate 3 Restroom",
        "31/01/2024 08:05:00",
        "Jl. Sudirman, Kec. Tanah Abang, Jakarta",
    )
    assert spec.branding == "ACME"


def test_lines_fall_back_to_coordinates():
    spec = build_watermark(CONTEXT, GeolocationFix(-6.2088, 106.8456))
    assert spec.lines[-1] == "-6.208800, 106.845600"
    assert len(spec.lines) == 3


def test_lines_without_fix():
    spec = build_watermark(CONTEXT, None)
    assert spec.lines == ("Gate 3 Restroom", "31/01/2024 08:05:00")


def test_display_name_used_when_no_structured_parts():
    fix = GeolocationFix(1.0, 2.0, address=AddressDetails(display_name="Somewhere"))
    assert build_watermark(CONTEXT, fix).lines[-1] == "Somewhere"


@pytest.mark.parametrize("width, expected", [(400, (20, 20)), (1280, (38, 32)), (720, (22, 20))])
def test_font_metrics_scale_with_width(width, expected):
    assert font_metrics(width) == expected


def test_layout_anchors_box_bottom_left():
    spec = WatermarkSpec(lines=("a", "bb", "ccc"), branding="BRAND")
    width, height = 1280, 720
    font_size, padding = font_metrics(width)
    font = load_font(font_size)
    layout = layout_watermark((width, height), spec, font, load_font(round(font_size * 0.9)))

    left, top, right, bottom = layout.box
    assert left == padding
    assert bottom == height - padding
    assert bottom - top == round(3 * font_size * 1.4 + 2 * padding)
    assert right > left
    assert [origin[0] for origin in layout.line_origins] == [padding * 2] * 3
    assert layout.line_origins[0][1] == top + padding


def test_brand_box_sits_top_right():
    spec = WatermarkSpec(lines=("x",), branding="TOILET CHECK")
    width, height = 720, 1280
    font_size, padding = font_metrics(width)
    layout = layout_watermark(
        (width, height), spec, load_font(font_size), load_font(round(font_size * 0.9))
    )
    left, top, right, _ = layout.brand_box
    assert top == padding
    assert right == width - padding
    assert 0 < left < right


def test_draw_watermark_darkens_the_bottom_left():
    canvas = Image.new("RGB", (640, 480), (255, 255, 255))
    spec = WatermarkSpec(lines=("Lobby", "01/01/2024 00:00:00"), branding="BRAND")
    result = draw_watermark(canvas, spec)
    pixels = np.asarray(result)

    assert result.mode == "RGB"
    assert result.size == canvas.size
    # inside the box margin, left of any text
    assert pixels[480 - 25, 25].max() < 100
    # untouched centre
    assert tuple(pixels[200, 320]) == (255, 255, 255)
