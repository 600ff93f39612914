"""Frame sinks: remote upload batches and the local encoder work directory."""

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from framecast.export.checksum import ChecksumManager

if TYPE_CHECKING:
    from framecast.export.cloud_client import CloudExportClient

logger = logging.getLogger(__name__)

FRAME_NAME = "frame{:06d}.jpg"
FRAME_PATTERN = "frame%06d.jpg"


class UploadBatchSink:
    """Accumulates frames and uploads them in fixed-size batches.

    One batch may be uploading while the next is being rendered. When a
    second batch fills up before the first finishes, ``write`` waits for
    the in-flight upload. A failed upload surfaces on the next ``write``
    (or ``close``) and ends the export.
    """

    def __init__(
        self,
        client: "CloudExportClient",
        session_id: str,
        batch_size: int,
        checksums: ChecksumManager,
    ):
        self.client = client
        self.session_id = session_id
        self.batch_size = max(1, batch_size)
        self.checksums = checksums
        self.uploaded_batches: list[int] = []
        self._batch: list[tuple[int, bytes]] = []
        self._in_flight: asyncio.Task | None = None

    async def write(self, frame_index: int, data: bytes) -> None:
        self._raise_if_failed()
        self._batch.append((frame_index, data))
        if len(self._batch) >= self.batch_size:
            batch, self._batch = self._batch, []
            await self._wait_in_flight()
            self._in_flight = asyncio.create_task(self._upload(batch))

    async def close(self) -> None:
        """Wait for the in-flight upload, then flush the final partial batch."""
        await self._wait_in_flight()
        if self._batch:
            batch, self._batch = self._batch, []
            await self._upload(batch)

    async def abort(self) -> None:
        self._batch = []
        if self._in_flight is not None and not self._in_flight.done():
            self._in_flight.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await self._in_flight
        self._in_flight = None

    def _raise_if_failed(self) -> None:
        task = self._in_flight
        if task is not None and task.done() and not task.cancelled() and task.exception() is not None:
            self._in_flight = None
            raise task.exception()

    async def _wait_in_flight(self) -> None:
        if self._in_flight is not None:
            task, self._in_flight = self._in_flight, None
            await task

    async def _upload(self, batch: list[tuple[int, bytes]]) -> None:
        await self.checksums.hash_batch(batch)
        await self.client.upload_chunk(self.session_id, batch)
        self.uploaded_batches.append(len(batch))
        logger.info(
            f"[UPLOAD] Batch {len(self.uploaded_batches)} uploaded "
            f"(frames {batch[0][0]}-{batch[-1][0]})"
        )


class LocalEncoderSink:
    """Writes frames as frame%06d.jpg into the encoder's work directory."""

    def __init__(self, work_dir: str | Path):
        self.work_dir = Path(work_dir)
        self.frames_written = 0

    async def write(self, frame_index: int, data: bytes) -> None:
        path = self.work_dir / FRAME_NAME.format(frame_index)
        await asyncio.to_thread(path.write_bytes, data)
        self.frames_written += 1

    async def close(self) -> None:
        logger.info(f"[ENCODE] {self.frames_written} frames staged in {self.work_dir}")

    async def abort(self) -> None:
        pass
