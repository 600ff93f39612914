"""Wait for a remote job and fetch its result.

Callers get bytes back whether the server pushes progress over SSE or the
client has to poll /status; the branch is taken here.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from typing import Any, Optional

from framecast.exceptions import ExportTimeoutError, JobFailedError, TransportError
from framecast.export.cloud_client import CloudExportClient, JobEvent

logger = logging.getLogger(__name__)


async def _poll_status(client: CloudExportClient, job_id: str) -> AsyncIterator[JobEvent]:
    while True:
        yield await client.get_status(job_id)
        await asyncio.sleep(client.poll_interval)


async def _await_completion(
    client: CloudExportClient,
    job_id: str,
    on_event: Optional[Callable[[JobEvent], Any]],
) -> JobEvent:
    events = client.stream_events(job_id) if client.supports_push else _poll_status(client, job_id)
    async with aclosing(events) as stream:
        async for event in stream:
            if on_event is not None:
                on_event(event)
            if event.status == "complete":
                return event
            if event.status == "failed":
                raise JobFailedError(event.error or event.message or None)
    raise TransportError(f"Event stream for job {job_id} closed before completion")


async def await_job_result(
    client: CloudExportClient,
    job_id: str,
    on_event: Optional[Callable[[JobEvent], Any]] = None,
    timeout: float | None = None,
) -> bytes:
    """Block until ``job_id`` completes, then download and return the video.

    Raises:
        JobFailedError: The job reported ``failed``
        ExportTimeoutError: Completion was not observed within ``timeout``
        TransportError: Any non-success response along the way
    """
    timeout = timeout if timeout is not None else client.settings.export_job_timeout_seconds
    mode = "push" if client.supports_push else "poll"
    logger.info(f"[JOB] Waiting for job {job_id} ({mode}, timeout {timeout:.0f}s)")
    try:
        await asyncio.wait_for(_await_completion(client, job_id, on_event), timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"[JOB] Job {job_id} did not complete within {timeout:.0f}s")
        raise ExportTimeoutError(f"Job {job_id} did not complete within {timeout:.0f}s") from e
    return await client.download(job_id)
