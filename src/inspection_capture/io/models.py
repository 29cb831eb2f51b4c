"""Data models shared across the inspection capture pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Tuple


class OrientationCode(IntEnum):
    """EXIF orientation values (tag 0x0112)."""

    TOP_LEFT = 1
    TOP_RIGHT = 2
    BOTTOM_RIGHT = 3
    BOTTOM_LEFT = 4
    LEFT_TOP = 5
    RIGHT_TOP = 6
    RIGHT_BOTTOM = 7
    LEFT_BOTTOM = 8

    @classmethod
    def coerce(cls, value: object) -> "OrientationCode":
        """Return the matching member, or ``TOP_LEFT`` for anything unknown."""
        try:
            return cls(int(value))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return cls.TOP_LEFT

    @property
    def swaps_dimensions(self) -> bool:
        return self >= OrientationCode.LEFT_TOP


DEFAULT_ORIENTATION = OrientationCode.TOP_LEFT


@dataclass(frozen=True, slots=True)
class RawCapture:
    """Bytes straight from the camera or gallery picker."""

    data: bytes
    mime_type: str = "image/jpeg"
    size_bytes: int = -1

    def __post_init__(self) -> None:
        if self.size_bytes < 0:
            object.__setattr__(self, "size_bytes", len(self.data))


@dataclass(frozen=True, slots=True)
class CaptureContext:
    """Capture-time details supplied by the surrounding application."""

    location_name: str
    timestamp_iso: str
    organization_id: str = ""


@dataclass(frozen=True, slots=True)
class AddressDetails:
    """Structured address returned by the reverse geocoder."""

    road: str | None = None
    village: str | None = None
    suburb: str | None = None
    district: str | None = None
    city: str | None = None
    postcode: str | None = None
    display_name: str | None = None

    def parts(self) -> list[str]:
        values: list[str] = []
        for value in (self.road, self.village, self.suburb):
            if value:
                values.append(value)
        if self.district:
            values.append(f"Kec. {self.district}")
        for value in (self.city, self.postcode):
            if value:
                values.append(value)
        return values

    def format_line(self) -> str:
        """Return the address parts joined into one watermark line."""
        line = ", ".join(self.parts())
        return line or (self.display_name or "")


@dataclass(frozen=True, slots=True)
class GeolocationFix:
    """Coordinates of a capture, optionally enriched with an address."""

    latitude: float
    longitude: float
    accuracy_m: float | None = None
    address: AddressDetails | None = None

    def coordinates_text(self) -> str:
        return f"{self.latitude:.6f}, {self.longitude:.6f}"

    def without_address(self) -> "GeolocationFix":
        return GeolocationFix(self.latitude, self.longitude, self.accuracy_m)


@dataclass(frozen=True, slots=True)
class WatermarkSpec:
    """Text burned into a processed photo."""

    lines: Tuple[str, ...]
    branding: str


@dataclass(frozen=True, slots=True)
class ProcessedPhoto:
    """Final output of one pipeline run, handed to the upload step."""

    data: bytes
    mime_type: str
    width: int | None
    height: int | None
    watermark: WatermarkSpec
    fix: GeolocationFix | None = None
    orientation: OrientationCode = DEFAULT_ORIENTATION
    watermarked: bool = False
    degraded_stages: Tuple[str, ...] = field(default_factory=tuple)
    correlation_id: str = ""

    @property
    def size_bytes(self) -> int:
        return len(self.data)
