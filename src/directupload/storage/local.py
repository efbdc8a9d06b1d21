"""Local filesystem storage adapter for development."""

import asyncio
import hashlib
import hmac
import logging
import os
import time
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator
from urllib.parse import urlencode

from directupload.core.config import settings
from directupload.storage.base import ObjectInfo, StorageAdapter, WriteCredential
from directupload.uploads.exceptions import StorageAdapterUnavailable

logger = logging.getLogger(__name__)


class ObjectTooLarge(ValueError):
    """Upload body exceeded the signed size limit."""


class LocalStorageAdapter(StorageAdapter):
    """Filesystem adapter.

    Write credentials point at the service's own local upload endpoint and
    carry an HMAC signature over the key, size limit and expiry.
    """

    def __init__(
        self,
        base_path: str | Path | None = None,
        upload_base_url: str | None = None,
        public_base_url: str | None = None,
        signing_key: str | None = None,
    ):
        self.base_path = Path(base_path or settings.LOCAL_STORAGE_PATH)
        self.upload_base_url = (upload_base_url or settings.LOCAL_UPLOAD_BASE_URL).rstrip("/")
        self.public_base_url = (public_base_url or settings.LOCAL_PUBLIC_BASE_URL).rstrip("/")
        self._signing_key = (signing_key or settings.LOCAL_SIGNING_KEY).encode("utf-8")

    def _path_for(self, object_key: str) -> Path:
        path = (self.base_path / object_key).resolve()
        if self.base_path.resolve() not in path.parents:
            raise ValueError(f"Object key escapes storage root: {object_key}")
        return path

    def _sign(self, object_key: str, max_size_bytes: int, expires: int) -> str:
        message = f"{object_key}\n{max_size_bytes}\n{expires}".encode("utf-8")
        return hmac.new(self._signing_key, message, hashlib.sha256).hexdigest()

    def check_signature(self, object_key: str, max_size_bytes: int, expires: int, signature: str) -> bool:
        """Validate a signature produced by ``issue_write_credential``."""
        if expires < int(time.time()):
            return False
        expected = self._sign(object_key, max_size_bytes, expires)
        return hmac.compare_digest(expected, signature)

    def issue_write_credential(
        self,
        object_key: str,
        validity: timedelta,
        max_size_bytes: int,
        content_type: str,
    ) -> WriteCredential:
        expires_at = datetime.now(timezone.utc) + validity
        expires = int(expires_at.timestamp())
        query = urlencode(
            {
                "max_size": max_size_bytes,
                "expires": expires,
                "signature": self._sign(object_key, max_size_bytes, expires),
            }
        )
        return WriteCredential(
            url=f"{self.upload_base_url}/{object_key}?{query}",
            method="PUT",
            headers={"Content-Type": content_type},
            expires_at=expires_at,
        )

    def _part_path(self, object_key: str) -> tuple[Path, Path]:
        """Final path of the object and a unique temporary path beside it."""
        target_path = self._path_for(object_key)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        part_path = target_path.with_name(f".{target_path.name}.{uuid.uuid4().hex}.part")
        return target_path, part_path

    async def write_stream(
        self, object_key: str, chunks: AsyncIterator[bytes], max_size_bytes: int
    ) -> int:
        """Write an uploaded body and publish it under ``object_key``.

        The body goes to a temporary file first; the object only appears
        under its key once it is complete and within the size limit.
        Reading stops as soon as the body passes ``max_size_bytes``.

        Returns:
            Number of bytes written

        Raises:
            ObjectTooLarge: If the body exceeds ``max_size_bytes``
        """
        target_path, part_path = self._part_path(object_key)

        written = 0
        try:
            with open(part_path, "wb") as f:
                async for chunk in chunks:
                    written += len(chunk)
                    if written > max_size_bytes:
                        raise ObjectTooLarge(f"Upload exceeds {max_size_bytes} bytes")
                    await asyncio.to_thread(f.write, chunk)
            await asyncio.to_thread(os.replace, part_path, target_path)
        finally:
            part_path.unlink(missing_ok=True)

        return written

    def stat(self, object_key: str) -> ObjectInfo:
        path = self._path_for(object_key)
        try:
            if not path.is_file():
                return ObjectInfo(exists=False)
            return ObjectInfo(exists=True, size=path.stat().st_size)
        except OSError as e:
            raise StorageAdapterUnavailable(f"Failed to stat {path}: {e}") from e

    def delete(self, object_key: str) -> bool:
        path = self._path_for(object_key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageAdapterUnavailable(f"Failed to delete {path}: {e}") from e

        logger.info(f"Deleted {path}")
        return True

    def set_public(self, object_key: str) -> str:
        # Files are served as-is by whatever fronts LOCAL_PUBLIC_BASE_URL
        return self.public_url(object_key)

    def public_url(self, object_key: str) -> str:
        return f"{self.public_base_url}/{object_key}"

    def get_backend_name(self) -> str:
        return "local"
