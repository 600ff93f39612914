"""One-shot FFmpeg encode of a staged frame sequence plus its audio track."""

import asyncio
import logging
import os
from pathlib import Path

from framecast.config import Settings, get_settings
from framecast.exceptions import EncodeError
from framecast.export.sinks import FRAME_PATTERN

logger = logging.getLogger(__name__)

OUTPUT_NAME = "output.mp4"


def even_dimensions(width: int, height: int) -> tuple[int, int]:
    """libx264 with yuv420p needs even sizes; round down."""
    return max(2, width - width % 2), max(2, height - height % 2)


def build_encode_command(
    work_dir: str | Path,
    audio_filename: str,
    fps: int,
    width: int,
    height: int,
    settings: Settings | None = None,
) -> list[str]:
    settings = settings or get_settings()
    work_dir = Path(work_dir)
    out_w, out_h = even_dimensions(width, height)
    return [
        settings.ffmpeg_path,
        "-y",
        "-framerate", str(fps),
        "-i", str(work_dir / FRAME_PATTERN),
        "-i", str(work_dir / audio_filename),
        "-c:v", settings.encode_video_codec,
        "-c:a", settings.encode_audio_codec,
        "-b:a", settings.encode_audio_bitrate,
        "-pix_fmt", "yuv420p",
        "-vf", f"scale={out_w}:{out_h}:flags=lanczos,setsar=1",
        "-shortest",
        "-preset", settings.encode_preset,
        "-crf", str(settings.encode_crf),
        "-movflags", "+faststart",
        str(work_dir / OUTPUT_NAME),
    ]


class FFmpegEncoder:
    """Runs the encode command and returns the finished file's bytes."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    async def encode(
        self,
        work_dir: str | Path,
        audio_filename: str,
        fps: int,
        width: int,
        height: int,
    ) -> bytes:
        cmd = build_encode_command(work_dir, audio_filename, fps, width, height, self.settings)
        logger.info(f"[ENCODE] Running: {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise EncodeError(f"ffmpeg not found: {self.settings.ffmpeg_path}") from e
        _, stderr = await proc.communicate()

        if proc.returncode != 0:
            stderr_text = stderr.decode("utf-8", errors="replace")
            logger.error(f"[ENCODE] FFmpeg failed: {stderr_text}")
            raise EncodeError(f"Video encoding failed: {stderr_text[-500:]}")

        output_path = Path(work_dir) / OUTPUT_NAME
        if not output_path.exists() or os.path.getsize(output_path) == 0:
            raise EncodeError("Encoder produced no output")
        data = await asyncio.to_thread(output_path.read_bytes)
        logger.info(f"[ENCODE] Encoded {len(data)} bytes")
        return data
