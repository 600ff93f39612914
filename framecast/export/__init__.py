from framecast.export.base import ExportResult
from framecast.export.checksum import ChecksumManager, FrameChecksum
from framecast.export.cloud import CloudExportOrchestrator
from framecast.export.cloud_client import CloudExportClient, JobEvent
from framecast.export.job_registry import ExportJob, JobRegistry, JobStatus, job_registry
from framecast.export.job_waiter import await_job_result
from framecast.export.local import LocalExportOrchestrator
from framecast.export.progress import ExportProgress, ExportStage, ProgressReporter

__all__ = [
    "ExportResult",
    "ChecksumManager",
    "FrameChecksum",
    "CloudExportOrchestrator",
    "CloudExportClient",
    "JobEvent",
    "ExportJob",
    "JobRegistry",
    "JobStatus",
    "job_registry",
    "await_job_result",
    "LocalExportOrchestrator",
    "ExportProgress",
    "ExportStage",
    "ProgressReporter",
]
