"""
Pytest fixtures for framecast tests.

Media fixtures are generated on the fly (solid-color PNGs, a sine-tone WAV),
so the suite needs no external test data.

CI/CD Note:
Tests that call the ffmpeg/ffprobe binaries are marked with
@pytest.mark.requires_ffmpeg and are skipped automatically when ffmpeg is not
on PATH. Run `pytest -m "not requires_ffmpeg"` to deselect them explicitly.
"""

import shutil
import tempfile
import wave
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from framecast.config import Settings
from framecast.schemas.composition import Composition
from framecast.schemas.export_config import merge_export_config


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring the ffmpeg binaries (skipped when absent)"
    )


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


def pytest_collection_modifyitems(config, items):
    """Skip @pytest.mark.requires_ffmpeg tests when ffmpeg is missing."""
    if _ffmpeg_available():
        return
    skip_ffmpeg = pytest.mark.skip(reason="ffmpeg/ffprobe not available on PATH")
    for item in items:
        if "requires_ffmpeg" in item.keywords:
            item.add_marker(skip_ffmpeg)


def write_sine_wav(path: Path, seconds: float, sample_rate: int = 44100, freq: float = 440.0) -> Path:
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    pcm = (np.sin(2 * np.pi * freq * t) * 0.5 * 32767).astype("<i2")
    with wave.open(str(path), "wb") as f:
        f.setnchannels(1)
        f.setsampwidth(2)
        f.setframerate(sample_rate)
        f.writeframes(pcm.tobytes())
    return path


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="framecast_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def red_image(temp_output_dir) -> Path:
    path = temp_output_dir / "red.png"
    Image.new("RGB", (320, 180), (220, 30, 30)).save(path)
    return path


@pytest.fixture
def blue_image(temp_output_dir) -> Path:
    path = temp_output_dir / "blue.png"
    Image.new("RGB", (180, 320), (30, 30, 220)).save(path)
    return path


@pytest.fixture
def sine_wav(temp_output_dir) -> Path:
    """10 second 440Hz mono WAV."""
    return write_sine_wav(temp_output_dir / "tone.wav", 10.0)


@pytest.fixture
def small_settings(temp_output_dir) -> Settings:
    """Settings with a small output size so full exports stay fast."""
    return Settings(
        render_landscape_width=192,
        render_landscape_height=108,
        render_portrait_width=108,
        render_portrait_height=192,
        render_jpeg_quality=80,
        export_batch_size=96,
        export_poll_interval_seconds=0.0,
        local_storage_path=str(temp_output_dir / "storage"),
    )


@pytest.fixture
def two_asset_composition(red_image, blue_image, sine_wav) -> Composition:
    """10s composition: two stills and one word-timed cue."""
    return Composition.model_validate({
        "audio": str(sine_wav),
        "assets": [
            {"startTime": 0, "kind": "image", "media": str(red_image)},
            {"startTime": 5, "kind": "image", "media": str(blue_image)},
        ],
        "subtitles": [
            {
                "id": "cue-1",
                "startTime": 0,
                "endTime": 10,
                "text": "Hello world",
                "words": [
                    {"word": "Hello", "startTime": 0, "endTime": 1},
                    {"word": "world", "startTime": 1, "endTime": 2},
                ],
            }
        ],
    })


@pytest.fixture
def no_visualizer_config():
    return merge_export_config({"visualizer": {"enabled": False}})
