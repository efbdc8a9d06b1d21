"""Storage adapter selection."""

from directupload.core.config import settings
from directupload.storage.base import StorageAdapter

_adapter: StorageAdapter | None = None


def get_storage_adapter() -> StorageAdapter:
    """Return the adapter configured by STORAGE_BACKEND (cached per process).

    Raises:
        ValueError: If STORAGE_BACKEND names an unknown backend
    """
    global _adapter

    if _adapter is None:
        backend = settings.STORAGE_BACKEND.lower()
        if backend == "gcs":
            from directupload.storage.gcs import GCSStorageAdapter

            _adapter = GCSStorageAdapter()
        elif backend in ("s3", "aws"):
            from directupload.storage.s3 import S3StorageAdapter

            _adapter = S3StorageAdapter()
        elif backend == "local":
            from directupload.storage.local import LocalStorageAdapter

            _adapter = LocalStorageAdapter()
        else:
            raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")

    return _adapter
