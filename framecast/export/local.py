"""Local export: render frames into a work directory and encode once with ffmpeg.

Progress bands:
    preparing   0-5
    rendering   5-85
    encoding   85     single opaque encoder call
    complete  100
"""

import asyncio
import logging
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

from framecast.config import Settings
from framecast.export.base import BaseExporter, ExportResult
from framecast.export.encoder import FFmpegEncoder
from framecast.export.progress import ExportStage, ProgressReporter
from framecast.export.sinks import LocalEncoderSink
from framecast.render.media_cache import MediaCache
from framecast.schemas.composition import Composition
from framecast.schemas.export_config import ExportConfig
from framecast.services.audio_decoder import FFmpegAudioDecoder

logger = logging.getLogger(__name__)

PREPARE_END = 5.0
RENDER_END = 85.0


class LocalExportOrchestrator(BaseExporter):
    def __init__(
        self,
        settings: Settings | None = None,
        encoder: FFmpegEncoder | None = None,
        decoder: FFmpegAudioDecoder | None = None,
        media: MediaCache | None = None,
        storage: Any = None,
    ):
        super().__init__(settings=settings, decoder=decoder, media=media, storage=storage)
        self.encoder = encoder or FFmpegEncoder(self.settings)

    async def _run(
        self,
        composition: Composition,
        config: ExportConfig,
        reporter: ProgressReporter,
        cancel_check: Optional[Callable[[], Any]],
        persist: bool,
    ) -> ExportResult:
        prepared = await self._prepare(composition, config, reporter, PREPARE_END)
        reporter.report(ExportStage.PREPARING, PREPARE_END, "Preparing encoder")

        work_dir = Path(tempfile.mkdtemp(prefix="framecast_export_"))
        try:
            audio_name = "audio" + (Path(prepared.audio.filename).suffix or ".bin")
            await asyncio.to_thread((work_dir / audio_name).write_bytes, prepared.audio.data)

            sink = LocalEncoderSink(work_dir)
            loop = self._render_loop(composition, prepared, cancel_check)
            await loop.run(sink, reporter, band=(PREPARE_END, RENDER_END))

            reporter.report(ExportStage.ENCODING, RENDER_END, "Encoding video")
            data = await self.encoder.encode(
                work_dir, audio_name, prepared.fps, prepared.width, prepared.height
            )
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        remote_url = await self._persist(data) if persist else None
        return ExportResult(
            file_blob=data,
            remote_url=remote_url,
            total_frames=prepared.total_frames,
        )
