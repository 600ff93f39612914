"""Cloud export job records and session ownership."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from framecast.exceptions import SessionConflictError

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    """Cloud export job status."""

    QUEUED = "queued"
    RENDERING = "rendering"
    ENCODING = "encoding"
    COMPLETE = "complete"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.RENDERING, JobStatus.ENCODING, JobStatus.FAILED},
    JobStatus.RENDERING: {JobStatus.ENCODING, JobStatus.FAILED},
    JobStatus.ENCODING: {JobStatus.COMPLETE, JobStatus.FAILED},
    JobStatus.COMPLETE: set(),
    JobStatus.FAILED: set(),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExportJob:
    """A remote export session, from init to its terminal state."""

    session_id: str
    total_frames: int
    fps: int
    status: JobStatus = JobStatus.QUEUED
    progress_percent: float = 0.0
    # Remote job id (async finalize) and the persisted result URL, when known
    remote_job_id: Optional[str] = None
    result_handle: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETE, JobStatus.FAILED)

    def transition(
        self,
        status: JobStatus,
        *,
        progress: float | None = None,
        error: str | None = None,
        result_handle: str | None = None,
    ) -> None:
        """Move to ``status``; repeating the current status only updates progress."""
        if status is not self.status and status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(f"job {self.session_id}: cannot go from {self.status.value} to {status.value}")
        self.status = status
        if progress is not None:
            self.progress_percent = max(self.progress_percent, progress)
        if error is not None:
            self.error_message = error
        if result_handle is not None:
            self.result_handle = result_handle
        if status is JobStatus.COMPLETE:
            self.progress_percent = 100.0
        self.updated_at = _now()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "session_id": self.session_id,
            "total_frames": self.total_frames,
            "fps": self.fps,
            "status": self.status.value,
            "progress_percent": self.progress_percent,
            "remote_job_id": self.remote_job_id,
            "result_handle": self.result_handle,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class JobRegistry:
    """Thread-safe map of session id -> job; a live session has one owner."""

    def __init__(self) -> None:
        self._jobs: dict[str, ExportJob] = {}
        self._owners: dict[str, int] = {}
        self._lock = threading.Lock()

    def claim(self, job: ExportJob, owner: object) -> None:
        with self._lock:
            held = self._owners.get(job.session_id)
            existing = self._jobs.get(job.session_id)
            if held is not None and held != id(owner) and existing is not None and not existing.is_terminal:
                raise SessionConflictError(f"Session {job.session_id} is owned by another exporter")
            self._jobs[job.session_id] = job
            self._owners[job.session_id] = id(owner)
        logger.info(f"[JOB] Session {job.session_id} claimed ({job.total_frames} frames)")

    def release(self, session_id: str) -> None:
        with self._lock:
            self._owners.pop(session_id, None)

    def get(self, session_id: str) -> ExportJob | None:
        with self._lock:
            return self._jobs.get(session_id)

    def active_jobs(self) -> list[ExportJob]:
        with self._lock:
            return [job for job in self._jobs.values() if not job.is_terminal]


# Singleton instance
job_registry = JobRegistry()
