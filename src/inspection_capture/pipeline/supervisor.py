"""Stage-by-stage supervision of one capture, always ending in a photo."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from PIL import Image

from ..encode.codec import EncodingError, encode
from ..exif.orientation import read_orientation
from ..geo.geocode import ReverseGeocoder
from ..geo.resolver import (
    DEFAULT_GEOCODE_TIMEOUT,
    DEFAULT_POSITION_TIMEOUT,
    FixProgress,
    GeolocationResolver,
    Position,
)
from ..io.models import (
    DEFAULT_ORIENTATION,
    CaptureContext,
    GeolocationFix,
    OrientationCode,
    ProcessedPhoto,
    RawCapture,
    WatermarkSpec,
)
from ..render.compositor import CompositingError, compose, probe_dimensions
from ..render.transforms import MAX_DIMENSION
from ..render.watermark import DEFAULT_BRANDING, build_watermark
from .context import PipelineStage, RunContext, StageTimeouts

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

PositionSource = Callable[[], Awaitable[Optional[Position]]]
GeocoderFactory = Callable[[], Optional[ReverseGeocoder]]


class PipelineSupervisor:
    """Run Orienting -> Resolving -> Compositing -> Encoding for a capture.

    Each stage races its own timeout. A timeout or error substitutes the stage
    fallback and the run moves on, so :meth:`process` always returns a
    :class:`ProcessedPhoto`; in the worst case it wraps the untouched capture.
    """

    def __init__(
        self,
        timeouts: StageTimeouts | None = None,
        branding: str = DEFAULT_BRANDING,
        max_dimension: int = MAX_DIMENSION,
        geocoder_factory: GeocoderFactory | None = None,
        position_timeout: float = DEFAULT_POSITION_TIMEOUT,
        geocode_timeout: float = DEFAULT_GEOCODE_TIMEOUT,
    ) -> None:
        self.timeouts = timeouts or StageTimeouts()
        self.branding = branding
        self.max_dimension = max_dimension
        self.geocoder_factory = geocoder_factory or (lambda: None)
        self.position_timeout = position_timeout
        self.geocode_timeout = geocode_timeout

    @classmethod
    def from_settings(cls, settings: "Settings") -> "PipelineSupervisor":
        def make_geocoder() -> ReverseGeocoder | None:
            if not settings.geocode_enabled:
                return None
            return ReverseGeocoder(
                url=settings.geocode_url,
                user_agent=settings.user_agent,
                timeout=settings.geocode_timeout,
            )

        return cls(
            timeouts=settings.stage_timeouts(),
            branding=settings.branding,
            max_dimension=settings.max_dimension,
            geocoder_factory=make_geocoder,
            position_timeout=settings.position_timeout,
            geocode_timeout=settings.geocode_timeout,
        )

    async def process(
        self,
        capture: RawCapture,
        context: CaptureContext,
        position: PositionSource | None = None,
        run: RunContext | None = None,
    ) -> ProcessedPhoto:
        run = run or RunContext()
        try:
            return await self._run(capture, context, position, run)
        except Exception:  # noqa: BLE001 - the capture must never be lost
            logger.exception(
                "[%s] Unexpected pipeline failure, keeping original capture",
                run.correlation_id,
            )
            run.record(run.stage, run.clock(), degraded=True, reason="error")
            watermark = WatermarkSpec(lines=(), branding=self.branding)
            return self._passthrough(capture, watermark, None, DEFAULT_ORIENTATION, run)

    async def _run(
        self,
        capture: RawCapture,
        context: CaptureContext,
        position: PositionSource | None,
        run: RunContext,
    ) -> ProcessedPhoto:
        orientation = await self._orient(capture, run)
        fix = await self._resolve(position, run)
        watermark = build_watermark(context, fix, self.branding)

        raster = await self._compose(capture, orientation, watermark, run)
        if raster is None:
            return self._passthrough(capture, watermark, fix, orientation, run)

        try:
            width, height = raster.size
            encoded = await self._encode(raster, capture.size_bytes, run)
        finally:
            raster.close()
        if encoded is None:
            return self._passthrough(capture, watermark, fix, orientation, run)

        data, mime_type = encoded
        run.enter(PipelineStage.COMPLETED)
        logger.info(
            "[%s] Processed capture %d -> %d bytes (%s, %dx%d) in %.2fs",
            run.correlation_id,
            capture.size_bytes,
            len(data),
            mime_type,
            width,
            height,
            run.elapsed(),
        )
        return ProcessedPhoto(
            data=data,
            mime_type=mime_type,
            width=width,
            height=height,
            watermark=watermark,
            fix=fix,
            orientation=orientation,
            watermarked=True,
            degraded_stages=run.degraded_stages(),
            correlation_id=run.correlation_id,
        )

    async def _orient(self, capture: RawCapture, run: RunContext) -> OrientationCode:
        stage = PipelineStage.ORIENTING
        started = run.enter(stage)
        timeout = self.timeouts.for_stage(stage)
        try:
            orientation = await asyncio.wait_for(
                asyncio.to_thread(read_orientation, capture.data), timeout=timeout
            )
        except asyncio.TimeoutError:
            self._degrade(run, stage, started, "timeout")
            return DEFAULT_ORIENTATION
        except Exception:  # noqa: BLE001 - orientation always has a default
            logger.debug("[%s] Orientation read failed", run.correlation_id, exc_info=True)
            self._degrade(run, stage, started, "error")
            return DEFAULT_ORIENTATION
        run.record(stage, started, degraded=False)
        return orientation

    async def _resolve(self, position: PositionSource | None, run: RunContext) -> GeolocationFix | None:
        stage = PipelineStage.RESOLVING
        started = run.enter(stage)
        if position is None:
            run.record(stage, started, degraded=False, reason="no position source")
            return None

        geocoder = self.geocoder_factory()
        resolver = GeolocationResolver(
            position,
            geocoder,
            position_timeout=self.position_timeout,
            geocode_timeout=self.geocode_timeout,
        )
        progress = FixProgress()
        timeout = self.timeouts.for_stage(stage)
        try:
            fix = await asyncio.wait_for(resolver.resolve(progress), timeout=timeout)
        except asyncio.TimeoutError:
            fix = progress.seal()
            self._degrade(run, stage, started, "timeout")
            return fix
        except Exception:  # noqa: BLE001 - an absent fix is a valid outcome
            logger.exception("[%s] Geolocation failed", run.correlation_id)
            fix = progress.seal()
            self._degrade(run, stage, started, "error")
            return fix
        finally:
            progress.seal()
            if geocoder is not None:
                geocoder.close()
        run.record(stage, started, degraded=False)
        return fix

    async def _compose(
        self,
        capture: RawCapture,
        orientation: OrientationCode,
        watermark: WatermarkSpec,
        run: RunContext,
    ) -> Image.Image | None:
        stage = PipelineStage.COMPOSITING
        started = run.enter(stage)
        timeout = self.timeouts.for_stage(stage)
        try:
            raster = await asyncio.wait_for(
                asyncio.to_thread(
                    compose, capture.data, orientation, watermark, self.max_dimension
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            self._degrade(run, stage, started, "timeout")
            return None
        except CompositingError as exc:
            logger.warning("[%s] Compositing failed: %s", run.correlation_id, exc)
            self._degrade(run, stage, started, "failed")
            return None
        except Exception:  # noqa: BLE001 - fall back to the undecorated capture
            logger.exception("[%s] Unexpected compositing error", run.correlation_id)
            self._degrade(run, stage, started, "error")
            return None
        run.record(stage, started, degraded=False)
        return raster

    async def _encode(
        self, raster: Image.Image, source_size: int, run: RunContext
    ) -> tuple[bytes, str] | None:
        stage = PipelineStage.ENCODING
        started = run.enter(stage)
        timeout = self.timeouts.for_stage(stage)
        try:
            encoded = await asyncio.wait_for(
                asyncio.to_thread(encode, raster, source_size), timeout=timeout
            )
        except asyncio.TimeoutError:
            self._degrade(run, stage, started, "timeout")
            return None
        except EncodingError as exc:
            logger.warning("[%s] Encoding failed: %s", run.correlation_id, exc)
            self._degrade(run, stage, started, "failed")
            return None
        except Exception:  # noqa: BLE001 - fall back to the original bytes
            logger.exception("[%s] Unexpected encoding error", run.correlation_id)
            self._degrade(run, stage, started, "error")
            return None
        run.record(stage, started, degraded=False)
        return encoded

    def _degrade(self, run: RunContext, stage: PipelineStage, started: float, reason: str) -> None:
        logger.warning(
            "[%s] Stage %s degraded (%s), using fallback",
            run.correlation_id,
            stage.value,
            reason,
        )
        run.record(stage, started, degraded=True, reason=reason)

    def _passthrough(
        self,
        capture: RawCapture,
        watermark: WatermarkSpec,
        fix: GeolocationFix | None,
        orientation: OrientationCode,
        run: RunContext,
    ) -> ProcessedPhoto:
        dimensions = probe_dimensions(capture.data)
        width, height = dimensions if dimensions else (None, None)
        run.enter(PipelineStage.COMPLETED)
        logger.warning(
            "[%s] Saving original capture without watermark (%d bytes, %s)",
            run.correlation_id,
            capture.size_bytes,
            capture.mime_type,
        )
        return ProcessedPhoto(
            data=capture.data,
            mime_type=capture.mime_type,
            width=width,
            height=height,
            watermark=watermark,
            fix=fix,
            orientation=orientation,
            watermarked=False,
            degraded_stages=run.degraded_stages(),
            correlation_id=run.correlation_id,
        )
