"""Watermark text and box layout."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

from PIL import Image, ImageDraw, ImageFont

from ..io.models import CaptureContext, GeolocationFix, WatermarkSpec

logger = logging.getLogger(__name__)

DEFAULT_BRANDING = "TOILET CHECK"

_FONT_CANDIDATES = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf")
_BOX_FILL = (0, 0, 0, 217)
_TEXT_FILL = (255, 255, 255, 255)
_BRAND_BOX_FILL = (0, 0, 0, 153)
_BRAND_TEXT_FILL = (255, 255, 255, 242)

Box = Tuple[int, int, int, int]
Point = Tuple[int, int]
Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


def format_timestamp(timestamp_iso: str) -> str:
    """Return ``dd/MM/yyyy HH:mm:ss`` for an ISO-8601 timestamp."""
    try:
        moment = datetime.fromisoformat(timestamp_iso.strip())
    except (AttributeError, ValueError):
        logger.debug("Unparseable capture timestamp %r", timestamp_iso)
        return str(timestamp_iso)
    return moment.strftime("%d/%m/%Y %H:%M:%S")


def build_watermark(
    context: CaptureContext,
    fix: GeolocationFix | None,
    branding: str = DEFAULT_BRANDING,
) -> WatermarkSpec:
    """Return the watermark lines for one capture.

    The third line carries the address when the geocoder supplied one and the
    raw coordinates otherwise; it is omitted when no fix exists.
    """
    lines = [context.location_name, format_timestamp(context.timestamp_iso)]
    if fix is not None:
        address_line = fix.address.format_line() if fix.address else ""
        lines.append(address_line or fix.coordinates_text())
    return WatermarkSpec(lines=tuple(lines), branding=branding)


@dataclass(frozen=True, slots=True)
class WatermarkLayout:
    font_size: int
    padding: int
    line_height: float
    box: Box
    line_origins: Tuple[Point, ...]
    brand_box: Box
    brand_origin: Point


def font_metrics(width: int) -> tuple[int, int]:
    """Return ``(font_size, padding)`` scaled to the canvas *width*."""
    font_size = max(20, round(width * 0.03))
    padding = max(20, round(width * 0.025))
    return font_size, padding


def load_font(size: int) -> Font:
    """Return a bold TrueType font of *size*, falling back to Pillow's bundled font."""
    for name in _FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def layout_watermark(
    canvas_size: tuple[int, int],
    spec: WatermarkSpec,
    font: Font,
    brand_font: Font,
) -> WatermarkLayout:
    """Compute the bottom-left text box and the top-right branding box."""
    width, height = canvas_size
    font_size, padding = font_metrics(width)
    line_height = font_size * 1.4

    text_width = max((font.getlength(line) for line in spec.lines), default=0.0)
    box_height = round(len(spec.lines) * line_height + padding * 2)
    box_top = height - box_height - padding
    box = (padding, box_top, round(padding * 4 + text_width), height - padding)
    origins = tuple(
        (padding * 2, round(box_top + padding + line_height * index))
        for index in range(len(spec.lines))
    )

    brand_width = brand_font.getlength(spec.branding)
    brand_height = round(line_height * 1.8)
    brand_left = round(width - brand_width - padding * 3)
    brand_box = (brand_left, padding, width - padding, padding + brand_height)
    brand_origin = (
        brand_left + padding,
        round(padding + (brand_height - font_size * 0.9) / 2),
    )
    return WatermarkLayout(
        font_size=font_size,
        padding=padding,
        line_height=line_height,
        box=box,
        line_origins=origins,
        brand_box=brand_box,
        brand_origin=brand_origin,
    )


def draw_watermark(canvas: Image.Image, spec: WatermarkSpec) -> Image.Image:
    """Return *canvas* with the watermark and branding boxes burned in."""
    font_size, _ = font_metrics(canvas.width)
    font = load_font(font_size)
    brand_font = load_font(round(font_size * 0.9))
    layout = layout_watermark(canvas.size, spec, font, brand_font)

    overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    draw.rectangle(layout.box, fill=_BOX_FILL)
    for line, origin in zip(spec.lines, layout.line_origins):
        draw.text(origin, line, font=font, fill=_TEXT_FILL)
    draw.rectangle(layout.brand_box, fill=_BRAND_BOX_FILL)
    draw.text(layout.brand_origin, spec.branding, font=brand_font, fill=_BRAND_TEXT_FILL)

    base = canvas.convert("RGBA") if canvas.mode != "RGBA" else canvas
    composed = Image.alpha_composite(base, overlay)
    overlay.close()
    return composed.convert("RGB")
