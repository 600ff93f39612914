from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "framecast"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: str = "INFO"

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Render settings
    render_fps: int = 24
    render_landscape_width: int = 1920
    render_landscape_height: int = 1080
    render_portrait_width: int = 1080
    render_portrait_height: int = 1920
    render_jpeg_quality: int = 92
    render_audio_sample_rate: int = 44100
    # Analyser window; the visualizer receives fft_size / 2 bins per frame
    frequency_fft_size: int = 256
    # Upper bound on decoded video frames held by MediaCache
    media_cache_max_frames: int = 500

    # Local encoder
    encode_video_codec: str = "libx264"
    encode_audio_codec: str = "aac"
    encode_audio_bitrate: str = "256k"
    encode_preset: str = "medium"
    encode_crf: int = 21

    # Cloud export
    export_server_url: str = "http://localhost:3001"
    export_api_key: str = ""
    export_request_timeout: float = 60.0
    export_upload_timeout: float = 300.0
    export_batch_size: int = 96
    # False forces the blocking finalize (response body is the video)
    export_async_jobs: bool = True
    # False polls /status instead of subscribing to /events
    export_push_progress: bool = True
    export_poll_interval_seconds: float = 2.0
    export_job_timeout_seconds: float = 1800.0

    # Integrity
    checksum_concurrency: int = 10

    # Google Cloud Storage
    gcs_bucket_name: str = "framecast-exports"
    gcs_project_id: str = ""

    # Local storage for development (when GCS is not configured)
    use_local_storage: bool = True  # Set to False in production
    local_storage_path: str = "/tmp/framecast-storage"
    local_storage_base_url: str = "http://localhost:8000/files"

    def resolution(self, orientation: str) -> tuple[int, int]:
        """Output (width, height) for an orientation."""
        if orientation == "portrait":
            return self.render_portrait_width, self.render_portrait_height
        return self.render_landscape_width, self.render_landscape_height


@lru_cache
def get_settings() -> Settings:
    return Settings()
