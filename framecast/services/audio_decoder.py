"""Audio decoding service: source reference -> mono PCM samples."""

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

import httpx
import numpy as np

from framecast.config import get_settings
from framecast.exceptions import AudioDecodeError

logger = logging.getLogger(__name__)


@dataclass
class DecodedAudio:
    """Decoded audio plus the original encoded bytes (sent to the encoder)."""

    data: bytes
    filename: str
    samples: np.ndarray  # float32 mono
    sample_rate: int

    @property
    def duration(self) -> float:
        return len(self.samples) / self.sample_rate if self.sample_rate else 0.0


async def load_audio_bytes(source: str, timeout: float = 60.0) -> tuple[bytes, str]:
    """Read an audio source (local path or http(s) URL).

    Returns:
        (data, filename)

    Raises:
        AudioDecodeError: If the source is missing, unreachable or empty
    """
    if not source:
        raise AudioDecodeError("No audio source provided")

    if source.startswith(("http://", "https://")):
        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                resp = await client.get(source)
                resp.raise_for_status()
                data = resp.content
        except httpx.HTTPError as e:
            raise AudioDecodeError(f"Failed to fetch audio: {e}") from e
        filename = source.rsplit("/", 1)[-1].split("?", 1)[0] or "audio"
    else:
        path = Path(source)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise AudioDecodeError(f"Failed to read audio: {e}") from e
        filename = path.name

    if not data:
        raise AudioDecodeError(f"Audio source is empty: {source}")
    return data, filename


class FFmpegAudioDecoder:
    """Decodes any ffmpeg-readable audio to mono float32 PCM."""

    def __init__(self, sample_rate: int | None = None, ffmpeg_path: str | None = None):
        settings = get_settings()
        self.sample_rate = sample_rate or settings.render_audio_sample_rate
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path

    async def decode(self, source: str) -> DecodedAudio:
        data, filename = await load_audio_bytes(source)
        samples = await self.decode_bytes(data, filename)
        logger.info(
            f"[AUDIO] Decoded {filename}: {len(samples) / self.sample_rate:.2f}s "
            f"@ {self.sample_rate}Hz"
        )
        return DecodedAudio(
            data=data,
            filename=filename,
            samples=samples,
            sample_rate=self.sample_rate,
        )

    async def decode_bytes(self, data: bytes, filename: str = "audio") -> np.ndarray:
        """Run ffmpeg over the encoded bytes and return the PCM samples.

        The input goes through a temp file, not stdin, because container
        formats such as mp4/m4a need a seekable input.
        """
        suffix = Path(filename).suffix or ".bin"
        fd, input_path = tempfile.mkstemp(prefix="framecast_audio_", suffix=suffix)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)

            cmd = [
                self.ffmpeg_path,
                "-v", "error",
                "-i", input_path,
                "-f", "f32le",
                "-ac", "1",
                "-ar", str(self.sample_rate),
                "pipe:1",
            ]
            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as e:
                raise AudioDecodeError(f"ffmpeg not found: {self.ffmpeg_path}") from e
            stdout, stderr = await proc.communicate()
        finally:
            os.unlink(input_path)

        if proc.returncode != 0:
            stderr_text = stderr.decode("utf-8", errors="replace").strip()
            logger.error(f"[AUDIO] Decode failed: {stderr_text}")
            raise AudioDecodeError(f"Failed to decode audio: {stderr_text}")

        samples = np.frombuffer(stdout, dtype="<f4").astype(np.float32)
        if samples.size == 0:
            raise AudioDecodeError("Audio contains no samples")
        return samples
