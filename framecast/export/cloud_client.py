"""HTTP client for the remote export server.

Endpoints:
    POST /api/export/init               multipart audio -> {sessionId}
    POST /api/export/chunk?sessionId=   multipart frames -> 200
    POST /api/export/finalize           JSON -> {jobId} (async) or video bytes (sync)
    GET  /api/export/events/{jobId}     SSE stream of job progress
    GET  /api/export/status/{jobId}     job progress snapshot (polling)
    GET  /api/export/download/{jobId}   video bytes
"""

import json
import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from framecast.config import Settings, get_settings
from framecast.exceptions import TransportError
from framecast.export.sinks import FRAME_NAME

logger = logging.getLogger(__name__)


@dataclass
class JobEvent:
    """Progress of a remote encode job, as pushed or polled."""

    job_id: str
    status: str  # rendering | encoding | complete | failed
    progress: float = 0.0
    message: str = ""
    current_frame: Optional[int] = None
    total_frames: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], job_id: str = "") -> "JobEvent":
        return cls(
            job_id=str(data.get("jobId", job_id)),
            status=str(data.get("status", "")),
            progress=float(data.get("progress", 0) or 0),
            message=str(data.get("message", "") or ""),
            current_frame=data.get("currentFrame"),
            total_frames=data.get("totalFrames"),
            error=data.get("error"),
        )


def _error_message(resp: httpx.Response, default: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        text = resp.text.strip()
        return text[:300] if text else default
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or default)
    return default


def _raise_for_status(resp: httpx.Response, action: str) -> None:
    if resp.is_success:
        return
    message = _error_message(resp, f"{action} failed with HTTP {resp.status_code}")
    logger.error(f"[EXPORT] {action} failed ({resp.status_code}): {message}")
    raise TransportError(message, status_code=resp.status_code)


class CloudExportClient:
    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.export_server_url.rstrip("/")
        self.supports_async_jobs = self.settings.export_async_jobs
        self.supports_push = self.settings.export_push_progress
        self.poll_interval = self.settings.export_poll_interval_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        if self.settings.export_api_key:
            return {"X-API-Key": self.settings.export_api_key}
        return {}

    def _client(self, timeout: float | httpx.Timeout | None = None) -> httpx.AsyncClient:
        """Create an async HTTP client for the export server."""
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=timeout if timeout is not None else self.settings.export_request_timeout,
            transport=self._transport,
        )

    async def init_session(self, audio: bytes, filename: str = "audio.mp3") -> str:
        """Open a session and upload the source audio once."""
        try:
            async with self._client(timeout=self.settings.export_upload_timeout) as client:
                resp = await client.post(
                    "/api/export/init",
                    files={"audio": (filename, audio, "application/octet-stream")},
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Session init failed: {e}") from e
        _raise_for_status(resp, "Session init")

        session_id = resp.json().get("sessionId")
        if not session_id:
            raise TransportError("Session init returned no sessionId", status_code=resp.status_code)
        logger.info(f"[EXPORT] Session {session_id} opened")
        return str(session_id)

    async def upload_chunk(self, session_id: str, frames: Sequence[tuple[int, bytes]]) -> None:
        files = [
            ("frames", (FRAME_NAME.format(index), data, "image/jpeg"))
            for index, data in frames
        ]
        try:
            async with self._client(timeout=self.settings.export_upload_timeout) as client:
                resp = await client.post(
                    "/api/export/chunk",
                    params={"sessionId": session_id},
                    files=files,
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Chunk upload failed: {e}") from e
        _raise_for_status(resp, "Chunk upload")

    async def finalize(
        self,
        session_id: str,
        fps: int,
        total_frames: int,
        sync: bool,
        checksums: Mapping[str, Any] | None = None,
    ) -> str | bytes:
        """Finalize a session.

        Returns the remote job id when the server accepted an async job, or
        the finished video bytes when it encoded synchronously.
        """
        payload: dict[str, Any] = {
            "sessionId": session_id,
            "fps": fps,
            "totalFrames": total_frames,
            "sync": sync,
        }
        if checksums:
            payload["checksums"] = checksums

        # A sync finalize holds the connection for the whole server-side encode
        timeout = httpx.Timeout(self.settings.export_request_timeout, read=None) if sync else None
        try:
            async with self._client(timeout=timeout) as client:
                resp = await client.post("/api/export/finalize", json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"Finalize failed: {e}") from e
        _raise_for_status(resp, "Finalize")

        if resp.headers.get("content-type", "").startswith("application/json"):
            job_id = resp.json().get("jobId")
            if not job_id:
                raise TransportError("Finalize returned no jobId", status_code=resp.status_code)
            logger.info(f"[EXPORT] Session {session_id} finalized as job {job_id}")
            return str(job_id)
        if not resp.content:
            raise TransportError("Finalize returned an empty video", status_code=resp.status_code)
        return resp.content

    async def stream_events(self, job_id: str) -> AsyncIterator[JobEvent]:
        """Yield job events from the server-sent event stream."""
        timeout = httpx.Timeout(self.settings.export_request_timeout, read=None)
        try:
            async with self._client(timeout=timeout) as client:
                async with client.stream("GET", f"/api/export/events/{job_id}") as resp:
                    if not resp.is_success:
                        await resp.aread()
                        _raise_for_status(resp, "Event stream")
                    data_lines: list[str] = []
                    async for line in resp.aiter_lines():
                        if line.startswith("data:"):
                            data_lines.append(line[5:].strip())
                        elif not line and data_lines:
                            raw, data_lines = "\n".join(data_lines), []
                            try:
                                payload = json.loads(raw)
                            except json.JSONDecodeError:
                                payload = None
                            # Only JSON objects are job events
                            if not isinstance(payload, dict):
                                logger.warning(f"[JOB] Ignoring malformed event for {job_id}: {raw[:200]}")
                                continue
                            yield JobEvent.from_dict(payload, job_id)
        except httpx.HTTPError as e:
            raise TransportError(f"Event stream for job {job_id} failed: {e}") from e

    async def get_status(self, job_id: str) -> JobEvent:
        try:
            async with self._client() as client:
                resp = await client.get(f"/api/export/status/{job_id}")
        except httpx.HTTPError as e:
            raise TransportError(f"Status check failed: {e}") from e
        _raise_for_status(resp, "Status check")
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise TransportError(
                f"Status check for job {job_id} returned a malformed body", status_code=resp.status_code
            )
        return JobEvent.from_dict(payload, job_id)

    async def download(self, job_id: str) -> bytes:
        try:
            async with self._client(timeout=self.settings.export_upload_timeout) as client:
                resp = await client.get(f"/api/export/download/{job_id}")
        except httpx.HTTPError as e:
            raise TransportError(f"Download failed: {e}") from e
        _raise_for_status(resp, "Download")
        if not resp.content:
            raise TransportError(f"Job {job_id} result is empty", status_code=resp.status_code)
        return resp.content
