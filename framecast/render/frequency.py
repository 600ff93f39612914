"""Per-frame frequency snapshots for the spectrum visualizer.

Each output frame gets the magnitude spectrum of the fft_size samples that
end at the frame's timestamp, quantized to bytes the same way a browser
AnalyserNode does: Blackman window, magnitude in dB, then [-100, -30] dB
mapped linearly onto 0..255.
"""

import math

import numpy as np

MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0


class FrequencySampler:
    """Holds one byte snapshot per output frame."""

    def __init__(self, snapshots: np.ndarray, fps: int):
        self.snapshots = snapshots
        self.fps = fps

    @property
    def bin_count(self) -> int:
        return int(self.snapshots.shape[1])

    def __len__(self) -> int:
        return int(self.snapshots.shape[0])

    def snapshot(self, frame_index: int) -> np.ndarray:
        """Snapshot for a frame; frames past the end read as silence."""
        if 0 <= frame_index < len(self):
            return self.snapshots[frame_index]
        return np.zeros(self.bin_count, dtype=np.uint8)

    def for_time(self, time: float) -> np.ndarray:
        return self.snapshot(math.floor(time * self.fps))

    @classmethod
    def silent(cls, total_frames: int, fps: int, fft_size: int = 256) -> "FrequencySampler":
        return cls(np.zeros((total_frames, fft_size // 2), dtype=np.uint8), fps)

    @classmethod
    def from_samples(
        cls,
        samples: np.ndarray,
        sample_rate: int,
        fps: int,
        total_frames: int,
        fft_size: int = 256,
    ) -> "FrequencySampler":
        bins = fft_size // 2
        if total_frames <= 0:
            return cls(np.zeros((0, bins), dtype=np.uint8), fps)

        # Left-pad so frames near t=0 read a zero-filled history window
        padded = np.concatenate([np.zeros(fft_size, dtype=np.float32), samples.astype(np.float32)])
        ends = np.rint(np.arange(total_frames) / fps * sample_rate).astype(np.int64) + fft_size
        # Frames past the end of the audio analyse silence
        overrun = int(ends.max()) - len(padded)
        if overrun > 0:
            padded = np.concatenate([padded, np.zeros(overrun, dtype=np.float32)])
        offsets = np.arange(fft_size) - fft_size
        windows = padded[ends[:, None] + offsets[None, :]]

        spectrum = np.fft.rfft(windows * np.blackman(fft_size), axis=1)[:, :bins]
        magnitude = np.abs(spectrum) / fft_size
        decibels = 20.0 * np.log10(np.maximum(magnitude, 1e-12))
        scaled = (decibels - MIN_DECIBELS) * (255.0 / (MAX_DECIBELS - MIN_DECIBELS))
        snapshots = np.clip(np.floor(scaled), 0, 255).astype(np.uint8)

        # Nothing has played yet at t=0
        snapshots[0] = 0
        return cls(snapshots, fps)
