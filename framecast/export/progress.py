"""Export progress vocabulary shared by the cloud and local exporters.

Stages only move forward (preparing -> rendering -> encoding -> complete),
percent never decreases, and a failed export never reports complete.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ExportStage(Enum):
    """Export stages in the order they are reported."""

    PREPARING = "preparing"
    RENDERING = "rendering"
    ENCODING = "encoding"
    COMPLETE = "complete"


STAGE_ORDER = list(ExportStage)


@dataclass
class ExportProgress:
    """One progress update delivered to the UI callback."""

    stage: ExportStage
    percent: float
    message: str = ""
    current_frame: Optional[int] = None
    total_frames: Optional[int] = None
    current_asset_type: Optional[str] = None
    is_seeking_video: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the callback payload (optional counters omitted when unset)."""
        data: dict[str, Any] = {
            "stage": self.stage.value,
            "percent": self.percent,
            "message": self.message,
        }
        optional = {
            "currentFrame": self.current_frame,
            "totalFrames": self.total_frames,
            "currentAssetType": self.current_asset_type,
            "isSeekingVideo": self.is_seeking_video,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


ProgressCallback = Callable[[ExportProgress], Any]


def scale_percent(fraction: float, start: float, end: float) -> float:
    """Map a 0..1 fraction onto the [start, end] percent band."""
    fraction = min(1.0, max(0.0, fraction))
    return start + (end - start) * fraction


class ProgressReporter:
    """Guards a progress callback with the stage/percent rules."""

    def __init__(self, callback: ProgressCallback | None = None):
        self._callback = callback
        self._stage_index = -1
        self._percent = 0.0
        self._failed = False
        self._pending: set[asyncio.Future] = set()

    @property
    def stage(self) -> ExportStage | None:
        return STAGE_ORDER[self._stage_index] if self._stage_index >= 0 else None

    @property
    def percent(self) -> float:
        return self._percent

    @property
    def failed(self) -> bool:
        return self._failed

    def report(
        self,
        stage: ExportStage,
        percent: float,
        message: str = "",
        **counters: Any,
    ) -> ExportProgress | None:
        """Emit an update; skipped stages are emitted first at the current percent."""
        if self._failed:
            return None
        if stage is ExportStage.COMPLETE:
            raise ValueError("use complete() to finish an export")

        index = STAGE_ORDER.index(stage)
        if index < self._stage_index:
            raise ValueError(
                f"progress stage cannot move back from {self.stage.value} to {stage.value}"
            )
        while self._stage_index < index - 1:
            self._stage_index += 1
            self._emit(ExportProgress(STAGE_ORDER[self._stage_index], self._percent))

        self._stage_index = index
        self._percent = min(100.0, max(self._percent, float(percent)))
        progress = ExportProgress(stage, self._percent, message, **counters)
        self._emit(progress)
        return progress

    def complete(self, message: str = "Export complete") -> ExportProgress | None:
        if self._failed:
            return None
        complete_index = STAGE_ORDER.index(ExportStage.COMPLETE)
        while self._stage_index < complete_index - 1:
            self._stage_index += 1
            self._emit(ExportProgress(STAGE_ORDER[self._stage_index], self._percent))
        self._stage_index = complete_index
        self._percent = 100.0
        progress = ExportProgress(ExportStage.COMPLETE, 100.0, message)
        self._emit(progress)
        return progress

    def fail(self, error: BaseException | str) -> None:
        """Mark the export failed; later updates (including complete) are dropped."""
        self._failed = True
        logger.info(f"[EXPORT] Progress closed after failure: {error}")

    def _emit(self, progress: ExportProgress) -> None:
        if self._callback is None:
            return
        try:
            result = self._callback(progress)
            if inspect.isawaitable(result):
                future = asyncio.ensure_future(result)
                self._pending.add(future)
                future.add_done_callback(self._pending.discard)
        except Exception as e:
            logger.warning(f"[EXPORT] Progress callback raised: {e}", exc_info=True)
