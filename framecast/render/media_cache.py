"""Decoded media and style cache owned by one exporter.

Everything the compositor would otherwise decode repeatedly (still images,
video frames, fonts, gradient strips) lives here, keyed by source reference.
The owning exporter calls ``clear()`` once per completed export.
"""

import io
import logging
import math
import subprocess
from collections import OrderedDict
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
from PIL import Image, ImageFont

from framecast.config import get_settings
from framecast.exceptions import MediaLoadError
from framecast.utils.media_info import get_media_duration

logger = logging.getLogger(__name__)

# Bold sans candidates, first hit wins (Linux -> macOS)
FONT_CANDIDATES = [
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Bold.ttc",
    "/usr/share/fonts/truetype/noto/NotoSansCJK-Bold.ttc",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/noto/NotoSans-Bold.ttf",
    "/System/Library/Fonts/ヒラギノ角ゴシック W6.ttc",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
]


class MediaCache:
    def __init__(
        self,
        max_frames: int | None = None,
        ffmpeg_path: str | None = None,
        font_candidates: list[str] | None = None,
    ):
        settings = get_settings()
        self.max_frames = max_frames or settings.media_cache_max_frames
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.font_candidates = font_candidates if font_candidates is not None else FONT_CANDIDATES

        self._images: dict[str, Image.Image] = {}
        self._frames: OrderedDict[str, Image.Image] = OrderedDict()
        self._durations: dict[str, float] = {}
        self._fonts: dict[int, ImageFont.FreeTypeFont | ImageFont.ImageFont] = {}
        self._styles: dict[Any, Any] = {}

    def __len__(self) -> int:
        return len(self._images) + len(self._frames)

    # ------------------------------------------------------------------
    # Stills
    # ------------------------------------------------------------------

    def image(self, ref: str) -> Image.Image:
        """Decoded RGB still for a source reference."""
        cached = self._images.get(ref)
        if cached is not None:
            return cached
        data = self._read_bytes(ref)
        try:
            with Image.open(io.BytesIO(data)) as img:
                decoded = img.convert("RGB")
        except (OSError, ValueError) as e:
            raise MediaLoadError(f"Failed to decode image {ref}: {e}") from e
        self._images[ref] = decoded
        logger.info(f"[MEDIA] Loaded image {ref} ({decoded.width}x{decoded.height})")
        return decoded

    def _read_bytes(self, ref: str) -> bytes:
        if ref.startswith(("http://", "https://")):
            try:
                resp = httpx.get(ref, timeout=60.0, follow_redirects=True)
                resp.raise_for_status()
            except httpx.HTTPError as e:
                raise MediaLoadError(f"Failed to fetch {ref}: {e}") from e
            return resp.content
        try:
            return Path(ref).read_bytes()
        except OSError as e:
            raise MediaLoadError(f"Failed to read {ref}: {e}") from e

    # ------------------------------------------------------------------
    # Video
    # ------------------------------------------------------------------

    def video_duration(self, ref: str) -> float:
        if ref not in self._durations:
            try:
                self._durations[ref] = get_media_duration(ref)
            except RuntimeError as e:
                raise MediaLoadError(f"Failed to read duration of video {ref}: {e}") from e
        return self._durations[ref]

    def video_frame(self, ref: str, position: float, fps: int) -> Image.Image:
        """RGB frame at ``position`` seconds, quantized to the output frame grid."""
        frame_index = max(0, math.floor(position * fps))
        key = f"{ref}:{frame_index}"
        cached = self._frames.get(key)
        if cached is not None:
            self._frames.move_to_end(key)
            return cached

        frame = self._decode_video_frame(ref, frame_index / fps)
        self._frames[key] = frame
        while len(self._frames) > self.max_frames:
            self._frames.popitem(last=False)
        return frame

    def _decode_video_frame(self, ref: str, seconds: float) -> Image.Image:
        cmd = [
            self.ffmpeg_path,
            "-v", "error",
            "-ss", f"{seconds:.6f}",
            "-i", ref,
            "-frames:v", "1",
            "-f", "image2pipe",
            "-vcodec", "png",
            "pipe:1",
        ]
        result = subprocess.run(cmd, capture_output=True)
        if result.returncode != 0 or not result.stdout:
            stderr_text = result.stderr.decode("utf-8", errors="replace").strip()
            raise MediaLoadError(f"Failed to decode frame at {seconds:.3f}s of {ref}: {stderr_text}")
        with Image.open(io.BytesIO(result.stdout)) as img:
            return img.convert("RGB")

    # ------------------------------------------------------------------
    # Fonts / styles
    # ------------------------------------------------------------------

    def font(self, size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        cached = self._fonts.get(size)
        if cached is not None:
            return cached

        font = None
        for candidate_path in self.font_candidates:
            try:
                font = ImageFont.truetype(candidate_path, size)
                break
            except OSError:
                continue
        if font is None:
            logger.warning(f"[TEXT] No suitable font found, using PIL default at {size}px")
            font = ImageFont.load_default(size=size)

        self._fonts[size] = font
        return font

    def style(self, key: Any, factory: Callable[[], Any]) -> Any:
        """Memoize a derived drawing resource (gradients, masks)."""
        if key not in self._styles:
            self._styles[key] = factory()
        return self._styles[key]

    def clear(self) -> None:
        count = len(self)
        self._images.clear()
        self._frames.clear()
        self._durations.clear()
        self._fonts.clear()
        self._styles.clear()
        logger.info(f"[MEDIA] Cache cleared ({count} decoded entries)")
