"""Durable storage for finished exports (local disk or Google Cloud Storage)."""

import logging
from functools import lru_cache
from pathlib import Path

from framecast.config import get_settings
from framecast.exceptions import PersistenceError

logger = logging.getLogger(__name__)

settings = get_settings()


class LocalStorageService:
    """Local file storage for development without GCS."""

    def __init__(self, base_path: str | None = None, base_url: str | None = None) -> None:
        self.base_path = Path(base_path or settings.local_storage_path)
        self.base_url = (base_url or settings.local_storage_base_url).rstrip("/")

    def get_public_url(self, storage_key: str) -> str:
        """Get URL for accessing the file."""
        return f"{self.base_url}/{storage_key}"

    def upload_file_from_bytes(self, storage_key: str, data: bytes, content_type: str = "video/mp4") -> str:
        """Write an export under ``base_path`` and return its URL."""
        full_path = self.base_path / storage_key
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(data)
        except OSError as e:
            raise PersistenceError(f"Failed to write {storage_key}: {e}") from e
        return self.get_public_url(storage_key)


class GCSStorageService:
    """Google Cloud Storage service for production."""

    def __init__(self, bucket_name: str | None = None, project_id: str | None = None) -> None:
        from google.cloud import storage

        self._storage = storage
        self._client: storage.Client | None = None
        self._bucket: storage.Bucket | None = None
        self.bucket_name = bucket_name or settings.gcs_bucket_name
        self.project_id = project_id if project_id is not None else settings.gcs_project_id

    @property
    def client(self):
        if self._client is None:
            if self.project_id:
                self._client = self._storage.Client(project=self.project_id)
            else:
                self._client = self._storage.Client()
        return self._client

    @property
    def bucket(self):
        if self._bucket is None:
            self._bucket = self.client.bucket(self.bucket_name)
        return self._bucket

    def get_public_url(self, storage_key: str) -> str:
        """Get public URL for a file."""
        return f"https://storage.googleapis.com/{self.bucket_name}/{storage_key}"

    def upload_file_from_bytes(self, storage_key: str, data: bytes, content_type: str = "video/mp4") -> str:
        """Upload an export to the bucket and return its public URL."""
        from google.api_core.exceptions import GoogleAPIError

        blob = self.bucket.blob(storage_key)
        try:
            blob.upload_from_string(data, content_type=content_type)
        except GoogleAPIError as e:
            raise PersistenceError(f"GCS upload failed for {storage_key}: {e}") from e
        return self.get_public_url(storage_key)


# Use LocalStorageService or GCSStorageService based on config
StorageService = LocalStorageService if settings.use_local_storage else GCSStorageService


@lru_cache
def get_storage_service() -> LocalStorageService | GCSStorageService:
    logger.info(f"[STORAGE] Using {StorageService.__name__}")
    return StorageService()
