"""Sequential frame production shared by both exporters.

The loop renders frame N before frame N+1, encodes each frame to JPEG and
hands it to a sink. The sink decides where frames go (upload batches or the
local encoder's work directory).
"""

import asyncio
import io
import logging
import math
from collections.abc import Callable
from typing import Any, Optional, Protocol

from PIL import Image

from framecast.exceptions import ExportCancelledError
from framecast.export.progress import ExportStage, ProgressReporter, scale_percent
from framecast.render.asset_resolver import AssetResolver
from framecast.render.frame_compositor import new_surface, render_frame
from framecast.render.frequency import FrequencySampler
from framecast.render.media_cache import MediaCache
from framecast.schemas.composition import Composition
from framecast.schemas.export_config import ExportConfig

logger = logging.getLogger(__name__)


class FrameSink(Protocol):
    """Destination for encoded frames."""

    async def write(self, frame_index: int, data: bytes) -> None: ...

    async def close(self) -> None: ...

    async def abort(self) -> None: ...


def frame_count(duration: float, fps: int) -> int:
    # Rounding first keeps 10.0s * 24 at 240 despite float error
    return math.ceil(round(duration * fps, 6))


def encode_jpeg(surface: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    surface.save(buf, "JPEG", quality=quality)
    return buf.getvalue()


class FrameRenderLoop:
    def __init__(
        self,
        composition: Composition,
        config: ExportConfig,
        frequency: FrequencySampler,
        media: MediaCache,
        width: int,
        height: int,
        fps: int,
        total_frames: int,
        jpeg_quality: int = 92,
        cancel_check: Optional[Callable[[], Any]] = None,
    ):
        self.composition = composition
        self.config = config
        self.frequency = frequency
        self.media = media
        self.width = width
        self.height = height
        self.fps = fps
        self.total_frames = total_frames
        self.jpeg_quality = jpeg_quality
        self._cancel_check = cancel_check
        self._resolver = AssetResolver(composition.assets, config.transition.duration_seconds)

    async def _is_cancelled(self) -> bool:
        """Check if the export has been cancelled."""
        if self._cancel_check is None:
            return False
        result = self._cancel_check()
        if asyncio.iscoroutine(result):
            return await result
        return result

    def render_jpeg(self, surface: Image.Image, frame_index: int) -> bytes:
        """Render and compress one frame; depends only on ``frame_index``."""
        previous = self.frequency.snapshot(frame_index - 1) if frame_index > 0 else None
        render_frame(
            surface,
            self.width,
            self.height,
            frame_index / self.fps,
            self.composition.assets,
            self.composition.subtitles,
            self.frequency.snapshot(frame_index),
            previous,
            self.config,
            self.media,
            fps=self.fps,
        )
        return encode_jpeg(surface, self.jpeg_quality)

    async def run(
        self,
        sink: FrameSink,
        reporter: ProgressReporter,
        band: tuple[float, float] = (0.0, 85.0),
    ) -> int:
        """Render every frame into ``sink`` and flush it.

        Progress is reported once per second of output (and on the last
        frame), scaled onto ``band``. Returns the number of frames written.
        """
        # One surface per run; never shared between exports
        surface = new_surface(self.width, self.height)
        total = self.total_frames
        logger.info(f"[RENDER] Rendering {total} frames at {self.width}x{self.height}@{self.fps}")

        try:
            for index in range(total):
                if await self._is_cancelled():
                    raise ExportCancelledError(f"Export cancelled before frame {index}")

                data = await asyncio.to_thread(self.render_jpeg, surface, index)
                await sink.write(index, data)

                if index % self.fps == 0 or index == total - 1:
                    asset = self._resolver.active_asset(index / self.fps).current
                    reporter.report(
                        ExportStage.RENDERING,
                        scale_percent((index + 1) / total, *band),
                        f"Rendering frame {index + 1}/{total}",
                        current_frame=index + 1,
                        total_frames=total,
                        current_asset_type=asset.kind if asset else None,
                        is_seeking_video=bool(asset and asset.kind == "video"),
                    )
            await sink.close()
        except BaseException:
            await sink.abort()
            raise

        logger.info(f"[RENDER] Rendered {total} frames")
        return total
