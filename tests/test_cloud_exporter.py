"""Tests for CloudExportOrchestrator with a scripted export server."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest

from framecast.exceptions import (
    AudioDecodeError,
    ExportCancelledError,
    JobFailedError,
    PersistenceError,
    SessionConflictError,
    TransportError,
)
from framecast.export.cloud import CloudExportOrchestrator, remote_to_ui_percent
from framecast.export.cloud_client import JobEvent
from framecast.export.job_registry import ExportJob, JobRegistry, JobStatus
from framecast.export.progress import STAGE_ORDER, ExportStage
from framecast.render.media_cache import MediaCache
from framecast.services.audio_decoder import DecodedAudio
from framecast.services.storage_service import LocalStorageService


class FakeDecoder:
    def __init__(self, seconds: float = 10.0, sample_rate: int = 8000, error: Exception | None = None):
        self.seconds = seconds
        self.sample_rate = sample_rate
        self.error = error

    async def decode(self, source):
        if self.error is not None:
            raise self.error
        samples = np.zeros(int(self.seconds * self.sample_rate), dtype=np.float32)
        return DecodedAudio(data=b"RIFF-audio", filename="tone.wav", samples=samples, sample_rate=self.sample_rate)


class FakeCloudClient:
    """Records the wire calls an export makes."""

    def __init__(self, async_jobs=True, push=True, events=None, fail_upload_on=None):
        self.supports_async_jobs = async_jobs
        self.supports_push = push
        self.poll_interval = 0
        self.settings = SimpleNamespace(export_job_timeout_seconds=5)
        self.events = events if events is not None else [
            JobEvent("job-1", "encoding", 0, "Encoding"),
            JobEvent("job-1", "encoding", 50, "Encoding"),
            JobEvent("job-1", "complete", 100, "Done"),
        ]
        self.fail_upload_on = fail_upload_on
        self.init_calls: list[tuple[bytes, str]] = []
        self.uploads: list[list[int]] = []
        self.finalize_calls: list[dict] = []

    async def init_session(self, audio, filename="audio.mp3"):
        self.init_calls.append((audio, filename))
        return "sess-1"

    async def upload_chunk(self, session_id, frames):
        if self.fail_upload_on == len(self.uploads) + 1:
            raise TransportError("Chunk upload failed", status_code=500)
        self.uploads.append([index for index, _ in frames])

    async def finalize(self, session_id, fps, total_frames, sync, checksums=None):
        self.finalize_calls.append({
            "session_id": session_id, "fps": fps, "total_frames": total_frames,
            "sync": sync, "checksums": checksums,
        })
        return b"sync-video" if sync else "job-1"

    async def stream_events(self, job_id):
        for event in self.events:
            yield event

    async def get_status(self, job_id):
        return self.events[-1]

    async def download(self, job_id):
        return b"async-video"


def _assert_progress_contract(events):
    percents = [e.percent for e in events]
    assert percents == sorted(percents)
    stage_positions = [STAGE_ORDER.index(e.stage) for e in events]
    assert stage_positions == sorted(stage_positions)


@pytest.fixture
def registry():
    return JobRegistry()


def _exporter(settings, client, registry, **kwargs):
    kwargs.setdefault("decoder", FakeDecoder())
    kwargs.setdefault("media", MediaCache(font_candidates=[]))
    return CloudExportOrchestrator(settings=settings, client=client, registry=registry, **kwargs)


class TestRemoteProgressMapping:
    """Tests for remote_to_ui_percent."""

    def test_band_edges(self):
        """Test the progress band edges of the cloud export stages."""
        assert remote_to_ui_percent(0) == 90
        assert remote_to_ui_percent(100) == 99
        assert remote_to_ui_percent(150) == 99
        assert 90 <= remote_to_ui_percent(50) <= 99


class TestCloudExport:
    """Tests for the full cloud export flow."""

    @pytest.mark.asyncio
    async def test_async_job_flow(self, small_settings, registry, two_asset_composition, no_visualizer_config):
        """Test the full session, upload, finalize, wait and download flow."""
        client = FakeCloudClient()
        exporter = _exporter(small_settings, client, registry)
        events = []

        result = await exporter.export(two_asset_composition, events.append, no_visualizer_config)

        assert result.file_blob == b"async-video"
        assert result.total_frames == 240
        assert result.remote_url is None
        assert client.init_calls == [(b"RIFF-audio", "tone.wav")]
        assert [len(batch) for batch in client.uploads] == [96, 96, 48]
        assert client.uploads[-1][-1] == 239

        finalize = client.finalize_calls[0]
        assert finalize["sync"] is False
        assert finalize["total_frames"] == 240
        assert finalize["fps"] == 24
        assert len(finalize["checksums"]) == 240

        _assert_progress_contract(events)
        assert [s for s in STAGE_ORDER if any(e.stage is s for e in events)] == STAGE_ORDER
        assert events[-1].stage is ExportStage.COMPLETE
        assert events[-1].percent == 100
        encoding = [e.percent for e in events if e.stage is ExportStage.ENCODING]
        assert min(encoding) == 90 and max(encoding) == 99

        assert result.job.status is JobStatus.COMPLETE
        assert registry.active_jobs() == []
        assert len(exporter.media) == 0

    @pytest.mark.asyncio
    async def test_render_progress_band(self, small_settings, registry, two_asset_composition, no_visualizer_config):
        """Test that rendering progress stays inside its band."""
        events = []
        await _exporter(small_settings, FakeCloudClient(), registry).export(
            two_asset_composition, events.append, no_visualizer_config
        )
        rendering = [e for e in events if e.stage is ExportStage.RENDERING and e.current_frame]
        assert rendering[0].percent >= 10
        assert rendering[-1].percent == 90
        assert rendering[-1].current_frame == 240
        assert rendering[-1].total_frames == 240
        assert rendering[-1].current_asset_type == "image"
        preparing = [e for e in events if e.stage is ExportStage.PREPARING]
        assert preparing[-1].message == "Initializing render session"

    @pytest.mark.asyncio
    async def test_sync_finalize_returns_body(self, small_settings, registry, two_asset_composition, no_visualizer_config):
        """Test that a synchronous finalize returns the video in the response body."""
        client = FakeCloudClient(async_jobs=False)
        events = []

        result = await _exporter(small_settings, client, registry).export(
            two_asset_composition, events.append, no_visualizer_config
        )

        assert result.file_blob == b"sync-video"
        assert client.finalize_calls[0]["sync"] is True
        assert any(e.message == "Downloading..." and e.percent == 99 for e in events)
        _assert_progress_contract(events)

    @pytest.mark.asyncio
    async def test_polling_when_push_unavailable(self, small_settings, registry, two_asset_composition, no_visualizer_config):
        """Test that job status is polled when the event stream is unavailable."""
        client = FakeCloudClient(push=False)
        result = await _exporter(small_settings, client, registry).export(
            two_asset_composition, None, no_visualizer_config
        )
        assert result.file_blob == b"async-video"

    @pytest.mark.asyncio
    async def test_upload_failure_aborts(self, small_settings, registry, two_asset_composition, no_visualizer_config):
        """Test that a failed batch upload aborts the export."""
        client = FakeCloudClient(fail_upload_on=2)
        exporter = _exporter(small_settings, client, registry)
        events = []

        with pytest.raises(TransportError, match="Chunk upload failed"):
            await exporter.export(two_asset_composition, events.append, no_visualizer_config)

        assert client.finalize_calls == []
        assert all(e.stage is not ExportStage.COMPLETE for e in events)
        assert registry.get("sess-1").status is JobStatus.FAILED
        assert len(exporter.media) == 0

    @pytest.mark.asyncio
    async def test_failed_job_never_completes(self, small_settings, registry, two_asset_composition, no_visualizer_config):
        """Test that a failed remote job never reports completion."""
        client = FakeCloudClient(events=[
            JobEvent("job-1", "encoding", 30, "Encoding"),
            JobEvent("job-1", "failed", 30, "Encoding failed", error="ffmpeg exited 1"),
        ])
        events = []

        with pytest.raises(JobFailedError, match="ffmpeg exited 1"):
            await _exporter(small_settings, client, registry).export(
                two_asset_composition, events.append, no_visualizer_config
            )

        assert all(e.stage is not ExportStage.COMPLETE for e in events)
        assert registry.get("sess-1").error_message == "ffmpeg exited 1"

    @pytest.mark.asyncio
    async def test_decode_failure_before_rendering(self, small_settings, registry, two_asset_composition):
        """Test that an audio decode failure stops the export before rendering."""
        client = FakeCloudClient()
        decoder = FakeDecoder(error=AudioDecodeError("Failed to decode audio: invalid data"))
        events = []

        with pytest.raises(AudioDecodeError, match="invalid data"):
            await _exporter(small_settings, client, registry, decoder=decoder).export(
                two_asset_composition, events.append
            )

        assert client.init_calls == []
        assert all(e.stage is ExportStage.PREPARING for e in events)

    @pytest.mark.asyncio
    async def test_zero_length_audio(self, small_settings, registry, two_asset_composition):
        """Test that zero-length audio is rejected."""
        client = FakeCloudClient()
        with pytest.raises(AudioDecodeError):
            await _exporter(small_settings, client, registry, decoder=FakeDecoder(seconds=0)).export(
                two_asset_composition
            )
        assert client.init_calls == []

    @pytest.mark.asyncio
    async def test_cancel_before_first_frame(self, small_settings, registry, two_asset_composition, no_visualizer_config):
        """Test that cancelling before the first frame uploads nothing."""
        client = FakeCloudClient()

        async def cancelled():
            return True

        with pytest.raises(ExportCancelledError):
            await _exporter(small_settings, client, registry).export(
                two_asset_composition, None, no_visualizer_config, cancel_check=cancelled
            )
        assert client.uploads == []
        assert registry.get("sess-1").status is JobStatus.FAILED

    @pytest.mark.asyncio
    async def test_persists_result(self, small_settings, registry, two_asset_composition, no_visualizer_config, temp_output_dir):
        """Test that a persisted export is stored and its URL returned."""
        storage = LocalStorageService(base_path=str(temp_output_dir / "store"), base_url="http://files.test")
        result = await _exporter(small_settings, FakeCloudClient(), registry, storage=storage).export(
            two_asset_composition, None, no_visualizer_config, persist=True
        )

        assert result.remote_url.startswith("http://files.test/exports/export_")
        key = result.remote_url.removeprefix("http://files.test/")
        assert (storage.base_path / key).read_bytes() == b"async-video"
        assert result.job.result_handle == result.remote_url

    @pytest.mark.asyncio
    async def test_persistence_failure_is_swallowed(self, small_settings, registry, two_asset_composition, no_visualizer_config):
        """Test that a storage failure still returns the video."""
        storage = MagicMock()
        storage.upload_file_from_bytes.side_effect = PersistenceError("bucket unavailable")
        events = []

        result = await _exporter(small_settings, FakeCloudClient(), registry, storage=storage).export(
            two_asset_composition, events.append, no_visualizer_config, persist=True
        )

        assert result.file_blob == b"async-video"
        assert result.remote_url is None
        assert events[-1].stage is ExportStage.COMPLETE

    @pytest.mark.asyncio
    async def test_session_owned_elsewhere(self, small_settings, registry, two_asset_composition, no_visualizer_config):
        """Test that a session claimed by another exporter is rejected."""
        other_exporter = object()
        registry.claim(ExportJob(session_id="sess-1", total_frames=10, fps=24), owner=other_exporter)
        with pytest.raises(SessionConflictError):
            await _exporter(small_settings, FakeCloudClient(), registry).export(
                two_asset_composition, None, no_visualizer_config
            )


class TestResume:
    """Tests for re-attaching to an encoding job."""

    @pytest.mark.asyncio
    async def test_resume_encoding_job(self, small_settings, registry):
        """Test that an encoding job is resumed without re-rendering."""
        job = ExportJob(session_id="sess-9", total_frames=240, fps=24, status=JobStatus.ENCODING,
                        progress_percent=92, remote_job_id="job-9")
        events = []

        result = await _exporter(small_settings, FakeCloudClient(), registry).resume(job, events.append)

        assert result.file_blob == b"async-video"
        assert job.status is JobStatus.COMPLETE
        _assert_progress_contract(events)
        assert events[-1].stage is ExportStage.COMPLETE

    @pytest.mark.asyncio
    async def test_resume_requires_encoding_job(self, small_settings, registry):
        """Test that only an encoding job can be resumed."""
        job = ExportJob(session_id="sess-9", total_frames=240, fps=24)
        with pytest.raises(ValueError):
            await _exporter(small_settings, FakeCloudClient(), registry).resume(job)
