"""Media file information utilities using FFprobe."""

import json
import subprocess

from framecast.config import get_settings


def _run_ffprobe(file_path: str, *args) -> dict:
    """Run ffprobe and return parsed JSON."""
    cmd = [
        get_settings().ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        *args,
        file_path,
    ]

    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise RuntimeError(f"ffprobe failed: {result.stderr}")

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse ffprobe output: {e}")


def get_media_duration(file_path: str) -> float:
    """
    Get media file duration in seconds.

    Args:
        file_path: Path to media file

    Returns:
        Duration in seconds

    Raises:
        RuntimeError: If ffprobe fails or duration not found
    """
    data = _run_ffprobe(file_path, "-show_format")
    format_info = data.get("format", {})

    if "duration" not in format_info:
        raise RuntimeError(f"Duration not found in: {file_path}")

    return float(format_info["duration"])


def get_stream_duration(file_path: str, stream: str = "a") -> float:
    """
    Get the duration of the first audio ("a") or video ("v") stream in seconds.

    Raises:
        RuntimeError: If ffprobe fails or the stream is missing
    """
    data = _run_ffprobe(file_path, "-show_streams", "-select_streams", stream)

    streams = data.get("streams", [])
    if not streams or "duration" not in streams[0]:
        raise RuntimeError(f"No {stream} stream duration in: {file_path}")

    return float(streams[0]["duration"])


def count_video_frames(file_path: str) -> int:
    """Count decoded video frames (slow: decodes the whole stream)."""
    data = _run_ffprobe(
        file_path,
        "-count_frames",
        "-show_entries", "stream=nb_read_frames",
        "-select_streams", "v",
    )
    streams = data.get("streams", [])
    if not streams:
        raise RuntimeError(f"No video stream found in: {file_path}")
    return int(streams[0]["nb_read_frames"])
