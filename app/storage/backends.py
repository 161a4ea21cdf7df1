import logging
import os
from functools import lru_cache
from pathlib import Path

import cloudinary
from cloudinary import uploader
from cloudinary.exceptions import Error as CloudinaryError

from app.core import config
from app.core.errors import StorageTransientError

logger = logging.getLogger(__name__)


class CloudinaryBackend:
    name = "cloudinary"

    def __init__(self):
        cloudinary.config(
            cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
            api_key=os.getenv("CLOUDINARY_API_KEY"),
            api_secret=os.getenv("CLOUDINARY_API_SECRET"),
            secure=True
        )

    def put(self, object_id: str, data: bytes, content_type: str):
        try:
            upload_result = uploader.upload(
                data,
                folder=config.CLOUDINARY_FOLDER,
                public_id=object_id,
                resource_type="image",
                overwrite=True,
                quality="auto:good"
            )
        except CloudinaryError as e:
            logging.error(f"Cloudinary Error: {str(e)}")
            raise StorageTransientError(f"Image upload failed: {e}")
        return upload_result["public_id"], upload_result["secure_url"]

    def url(self, stored) -> str:
        return stored.url

    def delete(self, key: str) -> None:
        try:
            result = uploader.destroy(key)
        except CloudinaryError as e:
            raise StorageTransientError(f"Cloudinary delete error: {e}")
        # "not found" is fine, deletes are idempotent
        if result.get("result") not in ("ok", "not found"):
            raise StorageTransientError(f"Cloudinary delete returned {result!r}")


class LocalBackend:
    """Keeps blobs in a directory and serves them from /api/storage/files."""

    name = "local"

    def __init__(self, root: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path(self, key: str) -> Path:
        return self.root / key

    def put(self, object_id: str, data: bytes, content_type: str):
        try:
            self.path(object_id).write_bytes(data)
        except OSError as e:
            raise StorageTransientError(f"Image upload failed: {e}")
        return object_id, self._file_url(object_id)

    def url(self, stored) -> str:
        return self._file_url(stored.id)

    def delete(self, key: str) -> None:
        try:
            self.path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageTransientError(f"Local delete failed: {e}")

    @staticmethod
    def _file_url(object_id: str) -> str:
        return f"{config.PUBLIC_BASE_URL}/api/storage/files/{object_id}"


@lru_cache()
def get_backend():
    if config.STORAGE_BACKEND == "local":
        return LocalBackend(config.STORAGE_DIR)
    if config.STORAGE_BACKEND == "cloudinary":
        return CloudinaryBackend()
    raise ValueError(f"Unknown STORAGE_BACKEND {config.STORAGE_BACKEND!r}")
