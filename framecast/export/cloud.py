"""Cloud export: render locally, upload frame batches, encode on the server.

Progress bands:
    preparing   0-10   decode audio, open the remote session
    rendering  10-90   render + batch upload (one upload in flight)
    encoding   90-99   remote job progress mapped onto the band
    complete     100
"""

import logging
from collections.abc import Callable
from typing import Any, Optional

import httpx

from framecast.config import Settings
from framecast.export.base import BaseExporter, ExportResult
from framecast.export.checksum import ChecksumManager
from framecast.export.cloud_client import CloudExportClient, JobEvent
from framecast.export.job_registry import ExportJob, JobRegistry, JobStatus, job_registry
from framecast.export.job_waiter import await_job_result
from framecast.export.progress import ExportStage, ProgressCallback, ProgressReporter
from framecast.export.sinks import UploadBatchSink
from framecast.render.media_cache import MediaCache
from framecast.schemas.composition import Composition
from framecast.schemas.export_config import ExportConfig
from framecast.services.audio_decoder import FFmpegAudioDecoder

logger = logging.getLogger(__name__)

PREPARE_END = 10.0
RENDER_END = 90.0
REMOTE_BAND = 9.0


def remote_to_ui_percent(remote_progress: float) -> float:
    """Map remote job progress (0-100) onto the 90-99 encoding band."""
    remote_progress = min(100.0, max(0.0, remote_progress))
    return RENDER_END + round(remote_progress * REMOTE_BAND / 100)


class CloudExportOrchestrator(BaseExporter):
    def __init__(
        self,
        settings: Settings | None = None,
        client: CloudExportClient | None = None,
        decoder: FFmpegAudioDecoder | None = None,
        media: MediaCache | None = None,
        storage: Any = None,
        registry: JobRegistry | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(settings=settings, decoder=decoder, media=media, storage=storage)
        self.client = client or CloudExportClient(self.settings, transport=transport)
        self.registry = registry or job_registry

    async def _run(
        self,
        composition: Composition,
        config: ExportConfig,
        reporter: ProgressReporter,
        cancel_check: Optional[Callable[[], Any]],
        persist: bool,
    ) -> ExportResult:
        prepared = await self._prepare(composition, config, reporter, PREPARE_END)

        reporter.report(ExportStage.PREPARING, PREPARE_END, "Initializing render session")
        session_id = await self.client.init_session(prepared.audio.data, prepared.audio.filename)

        job = ExportJob(session_id=session_id, total_frames=prepared.total_frames, fps=prepared.fps)
        self.registry.claim(job, self)
        try:
            job.transition(JobStatus.RENDERING)
            checksums = ChecksumManager(self.settings.checksum_concurrency)
            sink = UploadBatchSink(
                self.client, session_id, self.settings.export_batch_size, checksums
            )
            loop = self._render_loop(composition, prepared, cancel_check)
            await loop.run(sink, reporter, band=(PREPARE_END, RENDER_END))
            logger.info(
                f"[EXPORT] Session {session_id}: {len(sink.uploaded_batches)} batches uploaded"
            )

            job.transition(JobStatus.ENCODING, progress=RENDER_END)
            reporter.report(ExportStage.ENCODING, RENDER_END, "Encoding video on server")
            data = await self._finalize(job, checksums, reporter)

            remote_url = await self._persist(data) if persist else None
            job.transition(JobStatus.COMPLETE, result_handle=remote_url)
        except BaseException as e:
            if not job.is_terminal:
                job.transition(JobStatus.FAILED, error=str(e) or type(e).__name__)
            raise
        finally:
            self.registry.release(session_id)

        return ExportResult(
            file_blob=data,
            remote_url=remote_url,
            total_frames=prepared.total_frames,
            job=job,
        )

    async def _finalize(
        self,
        job: ExportJob,
        checksums: ChecksumManager,
        reporter: ProgressReporter,
    ) -> bytes:
        sync = not self.client.supports_async_jobs
        outcome = await self.client.finalize(
            job.session_id,
            job.fps,
            job.total_frames,
            sync=sync,
            checksums=checksums.manifest_payload(),
        )
        if isinstance(outcome, bytes):
            # Synchronous finalize: the response body is the video
            reporter.report(ExportStage.ENCODING, RENDER_END + REMOTE_BAND, "Downloading...")
            return outcome

        job.remote_job_id = outcome
        return await self._await_job(job, reporter)

    async def _await_job(self, job: ExportJob, reporter: ProgressReporter) -> bytes:
        def on_event(event: JobEvent) -> None:
            if event.status == "failed":
                return
            percent = remote_to_ui_percent(event.progress)
            job.transition(JobStatus.ENCODING, progress=percent)
            reporter.report(
                ExportStage.ENCODING,
                percent,
                event.message or f"Encoding video ({event.progress:.0f}%)",
                current_frame=event.current_frame,
                total_frames=event.total_frames,
            )

        data = await await_job_result(
            self.client,
            job.remote_job_id,
            on_event=on_event,
            timeout=self.settings.export_job_timeout_seconds,
        )
        reporter.report(ExportStage.ENCODING, RENDER_END + REMOTE_BAND, "Downloading...")
        return data

    async def resume(
        self,
        job: ExportJob,
        on_progress: ProgressCallback | None = None,
        persist: bool = False,
    ) -> ExportResult:
        """Re-attach to a job that was already finalized and is encoding remotely."""
        if job.status is not JobStatus.ENCODING or not job.remote_job_id:
            raise ValueError(f"job {job.session_id} is not awaiting a remote result")

        reporter = ProgressReporter(on_progress)
        self.registry.claim(job, self)
        try:
            reporter.report(ExportStage.ENCODING, job.progress_percent, "Resuming remote encode")
            data = await self._await_job(job, reporter)
            remote_url = await self._persist(data) if persist else None
            job.transition(JobStatus.COMPLETE, result_handle=remote_url)
        except BaseException as e:
            reporter.fail(e)
            if not job.is_terminal:
                job.transition(JobStatus.FAILED, error=str(e) or type(e).__name__)
            logger.error(f"[EXPORT] Resume of job {job.remote_job_id} failed: {e}")
            raise
        finally:
            self.registry.release(job.session_id)

        reporter.complete()
        return ExportResult(
            file_blob=data,
            remote_url=remote_url,
            total_frames=job.total_frames,
            job=job,
        )
