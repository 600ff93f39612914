"""Shared exporter lifecycle: prepare, render, persist, report."""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError

from framecast.config import Settings, get_settings
from framecast.constants.presets import resolve_preset
from framecast.exceptions import AudioDecodeError, InvalidCompositionError
from framecast.export.job_registry import ExportJob
from framecast.export.progress import ExportStage, ProgressCallback, ProgressReporter
from framecast.export.render_loop import FrameRenderLoop, frame_count
from framecast.render.frequency import FrequencySampler
from framecast.render.media_cache import MediaCache
from framecast.schemas.composition import Composition
from framecast.schemas.export_config import ExportConfig, merge_export_config
from framecast.services.audio_decoder import DecodedAudio, FFmpegAudioDecoder
from framecast.services.storage_service import get_storage_service

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Finished video plus its durable URL when it was persisted."""

    file_blob: bytes
    remote_url: Optional[str] = None
    total_frames: int = 0
    job: Optional[ExportJob] = None


@dataclass
class PreparedExport:
    config: ExportConfig
    audio: DecodedAudio
    duration: float
    fps: int
    total_frames: int
    width: int
    height: int
    frequency: FrequencySampler


class BaseExporter:
    """Template for both exporters.

    ``export`` owns the progress reporter and the media cache lifetime;
    subclasses implement ``_run`` and return the encoded bytes.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        decoder: FFmpegAudioDecoder | None = None,
        media: MediaCache | None = None,
        storage: Any = None,
    ):
        self.settings = settings or get_settings()
        self.decoder = decoder or FFmpegAudioDecoder(
            sample_rate=self.settings.render_audio_sample_rate,
            ffmpeg_path=self.settings.ffmpeg_path,
        )
        self.media = media if media is not None else MediaCache(
            max_frames=self.settings.media_cache_max_frames,
            ffmpeg_path=self.settings.ffmpeg_path,
        )
        self.storage = storage

    async def export(
        self,
        composition: Composition | Mapping[str, Any],
        on_progress: ProgressCallback | None = None,
        config: ExportConfig | Mapping[str, Any] | None = None,
        cancel_check: Optional[Callable[[], Any]] = None,
        persist: bool = False,
        preset: str | None = None,
    ) -> ExportResult:
        """Render ``composition`` to a video.

        ``preset`` names an entry of EXPORT_PRESETS; ``config`` is then merged
        on top of it.

        Raises:
            InputError: Composition or audio unusable (before any rendering)
            TransportError: Remote session, upload or job failure
            ExportTimeoutError: Remote job never completed
            EncodeError: Local encoder failed
            ExportCancelledError: ``cancel_check`` returned true
        """
        reporter = ProgressReporter(on_progress)
        name = type(self).__name__
        try:
            composition = self._resolve_composition(composition)
            resolved = self._resolve_config(config, preset)
            result = await self._run(composition, resolved, reporter, cancel_check, persist)
        except BaseException as e:
            reporter.fail(e)
            logger.error(f"[EXPORT] {name} failed: {e}")
            raise
        finally:
            self.media.clear()

        reporter.complete()
        logger.info(
            f"[EXPORT] {name} finished: {result.total_frames} frames, "
            f"{len(result.file_blob)} bytes"
        )
        return result

    async def _run(
        self,
        composition: Composition,
        config: ExportConfig,
        reporter: ProgressReporter,
        cancel_check: Optional[Callable[[], Any]],
        persist: bool,
    ) -> ExportResult:
        raise NotImplementedError

    @staticmethod
    def _resolve_composition(composition: Composition | Mapping[str, Any]) -> Composition:
        if isinstance(composition, Composition):
            return composition
        try:
            return Composition.model_validate(composition)
        except ValidationError as e:
            raise InvalidCompositionError(f"Invalid composition: {e}") from e

    @staticmethod
    def _resolve_config(
        config: ExportConfig | Mapping[str, Any] | None,
        preset: str | None = None,
    ) -> ExportConfig:
        try:
            if preset is not None:
                return resolve_preset(preset, config)
            if isinstance(config, ExportConfig):
                return config
            return merge_export_config(config)
        except ValueError as e:
            raise InvalidCompositionError(f"Invalid export config: {e}") from e

    async def _prepare(
        self,
        composition: Composition,
        config: ExportConfig,
        reporter: ProgressReporter,
        done_percent: float,
    ) -> PreparedExport:
        """Decode audio and derive frame count and frequency snapshots."""
        reporter.report(ExportStage.PREPARING, 0, "Decoding audio")
        audio = await self.decoder.decode(composition.audio)

        fps = config.fps or self.settings.render_fps
        duration = composition.duration or audio.duration
        total_frames = frame_count(duration, fps)
        if total_frames <= 0:
            raise AudioDecodeError("Audio has zero duration")

        reporter.report(ExportStage.PREPARING, done_percent / 2, "Analyzing audio")
        frequency = await asyncio.to_thread(
            FrequencySampler.from_samples,
            audio.samples,
            audio.sample_rate,
            fps,
            total_frames,
            self.settings.frequency_fft_size,
        )
        width, height = self.settings.resolution(config.orientation)
        logger.info(
            f"[EXPORT] Prepared {duration:.2f}s -> {total_frames} frames "
            f"({width}x{height}@{fps}, {len(composition.assets)} assets, "
            f"{len(composition.subtitles)} cues)"
        )
        return PreparedExport(
            config=config,
            audio=audio,
            duration=duration,
            fps=fps,
            total_frames=total_frames,
            width=width,
            height=height,
            frequency=frequency,
        )

    def _render_loop(
        self,
        composition: Composition,
        prepared: PreparedExport,
        cancel_check: Optional[Callable[[], Any]],
    ) -> FrameRenderLoop:
        return FrameRenderLoop(
            composition,
            prepared.config,
            prepared.frequency,
            self.media,
            prepared.width,
            prepared.height,
            prepared.fps,
            prepared.total_frames,
            jpeg_quality=prepared.config.jpeg_quality or self.settings.render_jpeg_quality,
            cancel_check=cancel_check,
        )

    async def _persist(self, data: bytes) -> str | None:
        """Save the result to durable storage; failures never fail the export."""
        storage_key = f"exports/export_{int(time.time() * 1000)}.mp4"
        try:
            storage = self.storage or get_storage_service()
            url = await asyncio.to_thread(
                storage.upload_file_from_bytes, storage_key, data, "video/mp4"
            )
        except Exception as e:
            logger.warning(f"[STORAGE] Failed to persist {storage_key}: {e}", exc_info=True)
            return None
        logger.info(f"[STORAGE] Persisted export to {url}")
        return url
