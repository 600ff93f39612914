"""Custom exceptions for framecast.

Every failure an export can raise derives from FramecastError and carries a
machine-readable code, so callers can branch on the category (input, transport,
timeout, persistence) without parsing messages.
"""

from typing import Any


class FramecastError(Exception):
    """Base exception for all framecast errors."""

    code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for progress/error payloads."""
        return {"code": self.code, "message": self.message}


# =============================================================================
# Input Errors
# =============================================================================


class InputError(FramecastError):
    """Base class for problems with the composition itself."""

    code = "INPUT_ERROR"
    message = "Invalid export input"


class AudioDecodeError(InputError):
    """Audio is missing, empty or could not be decoded."""

    code = "AUDIO_DECODE_FAILED"
    message = "Failed to decode audio"


class InvalidCompositionError(InputError):
    """Composition data violates its ordering or timing rules."""

    code = "INVALID_COMPOSITION"
    message = "Invalid composition"


class MediaLoadError(InputError):
    """An asset image or video frame could not be loaded."""

    code = "MEDIA_LOAD_FAILED"
    message = "Failed to load media"


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(FramecastError):
    """Remote export server returned a non-success response."""

    code = "TRANSPORT_ERROR"
    message = "Export server request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, code=code)
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class JobFailedError(TransportError):
    """Remote job reported a failed status."""

    code = "JOB_FAILED"
    message = "Remote export job failed"


class SessionConflictError(FramecastError):
    """A remote session id is already owned by another orchestrator."""

    code = "SESSION_CONFLICT"
    message = "Export session is already in use"


# =============================================================================
# Timeout / Encode / Cancel
# =============================================================================


class ExportTimeoutError(FramecastError):
    """Remote job completion was not observed within the wait bound."""

    code = "EXPORT_TIMEOUT"
    message = "Export job did not complete in time"


class EncodeError(FramecastError):
    """Local encoder exited with an error."""

    code = "ENCODE_FAILED"
    message = "Video encoding failed"


class ExportCancelledError(FramecastError):
    """Export was cancelled between frames."""

    code = "EXPORT_CANCELLED"
    message = "Export was cancelled"


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceError(FramecastError):
    """Saving the finished export to durable storage failed."""

    code = "PERSISTENCE_FAILED"
    message = "Failed to persist export"
