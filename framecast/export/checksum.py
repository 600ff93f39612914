"""Per-frame content hashes for transfer-integrity checks."""

import asyncio
import hashlib
import hmac
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from framecast.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class FrameChecksum:
    frame_index: int
    checksum: str
    size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "frameIndex": self.frame_index,
            "checksum": self.checksum,
            "size": self.size_bytes,
        }


@dataclass
class SequenceValidation:
    """Gaps and repeats in a received frame index sequence."""

    total_expected: int
    total_received: int
    missing_frames: list[int] = field(default_factory=list)
    duplicate_frames: list[int] = field(default_factory=list)
    out_of_range_frames: list[int] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not (self.missing_frames or self.duplicate_frames or self.out_of_range_frames)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "totalExpected": self.total_expected,
            "totalReceived": self.total_received,
            "missingFrames": self.missing_frames,
            "duplicateFrames": self.duplicate_frames,
            "outOfRangeFrames": self.out_of_range_frames,
        }


@dataclass
class BatchValidation:
    total_frames: int
    valid_frames: int = 0
    mismatches: list[dict[str, Any]] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.mismatches

    @property
    def invalid_frames(self) -> list[int]:
        return [m["frameIndex"] for m in self.mismatches]


class ChecksumManager:
    """SHA-256 hashing with a bounded number of concurrent hash tasks.

    Frames are hashed group by group (``concurrency`` at a time) and each
    result is recorded in the manifest sent with finalize.
    """

    def __init__(self, concurrency: int | None = None):
        self.concurrency = max(1, concurrency or get_settings().checksum_concurrency)
        self._manifest: dict[int, FrameChecksum] = {}

    @staticmethod
    def hash(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    def verify(self, data: bytes, expected: str) -> bool:
        return hmac.compare_digest(self.hash(data), expected.lower())

    def checksum(self, frame_index: int, data: bytes) -> FrameChecksum:
        return FrameChecksum(frame_index=frame_index, checksum=self.hash(data), size_bytes=len(data))

    async def hash_batch(self, frames: Sequence[tuple[int, bytes]]) -> list[FrameChecksum]:
        """Hash (index, data) pairs off the event loop and record them."""
        results: list[FrameChecksum] = []
        for start in range(0, len(frames), self.concurrency):
            group = frames[start:start + self.concurrency]
            results.extend(
                await asyncio.gather(
                    *(asyncio.to_thread(self.checksum, index, data) for index, data in group)
                )
            )
        self.record(results)
        return results

    def record(self, checksums: Iterable[FrameChecksum]) -> None:
        for item in checksums:
            self._manifest[item.frame_index] = item

    def build_manifest(self) -> dict[int, FrameChecksum]:
        return {index: self._manifest[index] for index in sorted(self._manifest)}

    def manifest_payload(self) -> dict[str, dict[str, Any]]:
        """Manifest keyed by stringified frame index, as sent over JSON."""
        return {str(index): item.to_dict() for index, item in self.build_manifest().items()}

    def reset(self) -> None:
        self._manifest.clear()


def validate_frame_sequence(indices: Iterable[int], total_frames: int) -> SequenceValidation:
    received = list(indices)
    result = SequenceValidation(total_expected=total_frames, total_received=len(received))
    seen: set[int] = set()
    for index in received:
        if index < 0 or index >= total_frames:
            result.out_of_range_frames.append(index)
        elif index in seen:
            result.duplicate_frames.append(index)
        seen.add(index)
    result.missing_frames = [i for i in range(total_frames) if i not in seen]

    if not result.valid:
        logger.warning(
            f"[CHECKSUM] Sequence invalid: missing={len(result.missing_frames)}, "
            f"duplicates={len(result.duplicate_frames)}, out_of_range={len(result.out_of_range_frames)}"
        )
    return result


def validate_frame_batch(
    frames: Sequence[tuple[int, bytes]],
    manifest: Mapping[int, FrameChecksum],
) -> BatchValidation:
    """Compare frame bytes against the manifest; frames without an entry pass."""
    result = BatchValidation(total_frames=len(frames))
    for index, data in frames:
        expected = manifest.get(index)
        if expected is None:
            result.valid_frames += 1
            continue
        actual = ChecksumManager.hash(data)
        if hmac.compare_digest(actual, expected.checksum):
            result.valid_frames += 1
        else:
            result.mismatches.append(
                {"frameIndex": index, "expected": expected.checksum, "actual": actual}
            )
    return result
