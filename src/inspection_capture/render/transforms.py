"""Geometry helpers: bounded resize and EXIF orientation transforms."""

from __future__ import annotations

import math

from PIL import Image

from ..io.models import OrientationCode

MAX_DIMENSION = 1280

_Transpose = Image.Transpose


def target_size(width: int, height: int, bound: int = MAX_DIMENSION) -> tuple[int, int]:
    """Return *width* x *height* scaled down so neither side exceeds *bound*."""
    if width <= bound and height <= bound:
        return width, height
    ratio = min(bound / width, bound / height)
    return math.floor(width * ratio), math.floor(height * ratio)


def oriented_size(width: int, height: int, orientation: OrientationCode) -> tuple[int, int]:
    """Return the canvas size after applying *orientation*."""
    if orientation.swaps_dimensions:
        return height, width
    return width, height


def orientation_op(orientation: OrientationCode) -> _Transpose | None:
    """Return the transpose that turns a stored image upright."""
    match orientation:
        case OrientationCode.TOP_LEFT:
            return None
        case OrientationCode.TOP_RIGHT:
            return _Transpose.FLIP_LEFT_RIGHT
        case OrientationCode.BOTTOM_RIGHT:
            return _Transpose.ROTATE_180
        case OrientationCode.BOTTOM_LEFT:
            return _Transpose.FLIP_TOP_BOTTOM
        case OrientationCode.LEFT_TOP:
            return _Transpose.TRANSPOSE
        case OrientationCode.RIGHT_TOP:
            return _Transpose.ROTATE_270
        case OrientationCode.RIGHT_BOTTOM:
            return _Transpose.TRANSVERSE
        case OrientationCode.LEFT_BOTTOM:
            return _Transpose.ROTATE_90


def inverse_op(orientation: OrientationCode) -> _Transpose | None:
    """Return the transpose that undoes :func:`orientation_op`."""
    match orientation:
        case OrientationCode.RIGHT_TOP:
            return _Transpose.ROTATE_90
        case OrientationCode.LEFT_BOTTOM:
            return _Transpose.ROTATE_270
        case _:
            # flips, 180 degree rotation, transpose and transverse are involutions
            return orientation_op(orientation)


def apply_orientation(img: Image.Image, orientation: OrientationCode) -> Image.Image:
    """Return *img* drawn upright according to *orientation*."""
    op = orientation_op(orientation)
    return img.copy() if op is None else img.transpose(op)


def invert_orientation(img: Image.Image, orientation: OrientationCode) -> Image.Image:
    """Return *img* mapped back to its stored orientation."""
    op = inverse_op(orientation)
    return img.copy() if op is None else img.transpose(op)
