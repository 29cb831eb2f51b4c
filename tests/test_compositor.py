import io

import pytest
from PIL import Image

from inspection_capture.io.models import OrientationCode, WatermarkSpec
from inspection_capture.render.compositor import (
    CompositingError,
    compose,
    decode_rgb,
    probe_dimensions,
    resize_to_bound,
)

from .conftest import make_jpeg

WATERMARK = WatermarkSpec(lines=("Lobby", "01/02/2024 10:00:00"), branding="BRAND")


def test_compose_resizes_then_rotates():
    data = make_jpeg((1920, 1080))
    result = compose(data, OrientationCode.RIGHT_TOP, WATERMARK)
    assert result.size == (720, 1280)
    assert result.mode == "RGB"


def test_compose_keeps_small_images_at_native_size():
    data = make_jpeg((640, 480))
    assert compose(data, OrientationCode.TOP_LEFT, WATERMARK).size == (640, 480)


def test_decode_flattens_alpha_onto_white():
    buffer = io.BytesIO()
    Image.new("RGBA", (8, 8), (0, 0, 0, 0)).save(buffer, format="PNG")
    image = decode_rgb(buffer.getvalue())
    assert image.mode == "RGB"
    assert image.getpixel((0, 0)) == (255, 255, 255)


@pytest.mark.parametrize("payload", [b"", b"definitely not an image"])
def test_undecodable_payloads_raise(payload):
    with pytest.raises(CompositingError):
        compose(payload, OrientationCode.TOP_LEFT, WATERMARK)


def test_degenerate_target_raises():
    with pytest.raises(CompositingError):
        resize_to_bound(Image.new("RGB", (4000, 2)), 1280)


def test_probe_dimensions():
    assert probe_dimensions(make_jpeg((300, 200))) == (300, 200)
    assert probe_dimensions(b"garbage") is None
