"""Bounded-time geolocation: device position first, then an optional address."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional, Protocol

from ..io.models import GeolocationFix
from .geocode import ReverseGeocoder

logger = logging.getLogger(__name__)

DEFAULT_POSITION_TIMEOUT = 5.0
DEFAULT_GEOCODE_TIMEOUT = 3.0


class PositionUnavailable(Exception):
    """Raised by a position provider when no fix can be obtained."""


@dataclass(frozen=True, slots=True)
class Position:
    latitude: float
    longitude: float
    accuracy_m: float | None = None


class PositionProvider(Protocol):
    def __call__(self) -> Awaitable[Optional[Position]]: ...


class StaticPositionProvider:
    """Provider returning a position the device layer already knows."""

    def __init__(self, latitude: float, longitude: float, accuracy_m: float | None = None) -> None:
        self._position = Position(latitude, longitude, accuracy_m)

    async def __call__(self) -> Position | None:
        return self._position


class NullPositionProvider:
    """Provider for captures where location access is denied."""

    async def __call__(self) -> Position | None:
        raise PositionUnavailable("location access not granted")


class FixProgress:
    """Latest fix published by a running resolver.

    The supervisor seals it when its deadline fires; publishing after that is
    ignored, so an abandoned resolver cannot change what was already used.
    """

    def __init__(self) -> None:
        self._fix: GeolocationFix | None = None
        self._sealed = False

    def publish(self, fix: GeolocationFix) -> bool:
        if self._sealed:
            return False
        self._fix = fix
        return True

    def seal(self) -> GeolocationFix | None:
        self._sealed = True
        return self._fix

    @property
    def sealed(self) -> bool:
        return self._sealed


class GeolocationResolver:
    """Resolve a :class:`GeolocationFix`, degrading instead of failing.

    The position query and the reverse geocode are bounded independently. No
    geocode request is made unless the position query succeeded, and a slow or
    failing geocoder only drops the address, never the coordinates.
    """

    def __init__(
        self,
        provider: Callable[[], Awaitable[Optional[Position]]],
        geocoder: ReverseGeocoder | None = None,
        position_timeout: float = DEFAULT_POSITION_TIMEOUT,
        geocode_timeout: float = DEFAULT_GEOCODE_TIMEOUT,
    ) -> None:
        self.provider = provider
        self.geocoder = geocoder
        self.position_timeout = position_timeout
        self.geocode_timeout = geocode_timeout

    async def resolve(self, progress: FixProgress | None = None) -> GeolocationFix | None:
        position = await self._query_position()
        if position is None:
            return None

        fix = GeolocationFix(
            latitude=position.latitude,
            longitude=position.longitude,
            accuracy_m=position.accuracy_m,
        )
        if progress is not None:
            progress.publish(fix)
        if self.geocoder is None:
            return fix

        address = await self._reverse_geocode(fix)
        if address is None:
            return fix
        enriched = replace(fix, address=address)
        if progress is not None:
            progress.publish(enriched)
        return enriched

    async def _query_position(self) -> Position | None:
        try:
            return await asyncio.wait_for(self.provider(), timeout=self.position_timeout)
        except asyncio.TimeoutError:
            logger.warning("Position query timed out after %.1fs", self.position_timeout)
        except (PositionUnavailable, PermissionError) as exc:
            logger.info("Position unavailable: %s", exc)
        except Exception:  # noqa: BLE001 - a broken provider means no fix
            logger.exception("Position provider failed")
        return None

    async def _reverse_geocode(self, fix: GeolocationFix):
        assert self.geocoder is not None
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.geocoder.reverse, fix.latitude, fix.longitude),
                timeout=self.geocode_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Geocoding timed out after %.1fs, using coordinates only",
                self.geocode_timeout,
            )
        except Exception:  # noqa: BLE001 - address is optional
            logger.exception("Geocoding failed, using coordinates only")
        return None
