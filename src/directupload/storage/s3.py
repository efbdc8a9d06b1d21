"""AWS S3 adapter."""

import logging
from datetime import datetime, timedelta, timezone

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from directupload.core.config import settings
from directupload.storage.base import ObjectInfo, StorageAdapter, WriteCredential
from directupload.uploads.exceptions import StorageAdapterUnavailable

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


class S3StorageAdapter(StorageAdapter):
    """S3 adapter issuing presigned POST forms.

    The POST policy pins the key, the content type and a
    ``content-length-range``, so S3 itself refuses oversized uploads.
    """

    def __init__(self, bucket_name: str | None = None, timeout: float | None = None, client=None):
        self.bucket_name = bucket_name or settings.AWS_S3_BUCKET
        if not self.bucket_name:
            raise ValueError("AWS_S3_BUCKET not configured")

        timeout = timeout if timeout is not None else settings.STORAGE_TIMEOUT_SECONDS
        self._s3 = client or boto3.client(
            "s3",
            region_name=settings.AWS_REGION,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "virtual"},
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 2},
            ),
        )

    def issue_write_credential(
        self,
        object_key: str,
        validity: timedelta,
        max_size_bytes: int,
        content_type: str,
    ) -> WriteCredential:
        try:
            post = self._s3.generate_presigned_post(
                Bucket=self.bucket_name,
                Key=object_key,
                Fields={"Content-Type": content_type},
                Conditions=[
                    {"Content-Type": content_type},
                    ["content-length-range", 0, max_size_bytes],
                ],
                ExpiresIn=int(validity.total_seconds()),
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to presign POST for {object_key}: {e}", exc_info=True)
            raise StorageAdapterUnavailable(f"Failed to generate presigned POST: {e}") from e

        return WriteCredential(
            url=post["url"],
            method="POST",
            fields={str(k): str(v) for k, v in post["fields"].items()},
            expires_at=datetime.now(timezone.utc) + validity,
        )

    def stat(self, object_key: str) -> ObjectInfo:
        try:
            head = self._s3.head_object(Bucket=self.bucket_name, Key=object_key)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return ObjectInfo(exists=False)
            raise StorageAdapterUnavailable(f"HEAD s3://{self.bucket_name}/{object_key} failed: {e}") from e
        except BotoCoreError as e:
            raise StorageAdapterUnavailable(f"HEAD s3://{self.bucket_name}/{object_key} failed: {e}") from e

        return ObjectInfo(exists=True, size=int(head["ContentLength"]))

    def delete(self, object_key: str) -> bool:
        # S3 deletes are idempotent and don't report whether the key existed
        if not self.stat(object_key).exists:
            return False

        try:
            self._s3.delete_object(Bucket=self.bucket_name, Key=object_key)
        except (BotoCoreError, ClientError) as e:
            raise StorageAdapterUnavailable(f"DELETE s3://{self.bucket_name}/{object_key} failed: {e}") from e

        logger.info(f"Deleted s3://{self.bucket_name}/{object_key}")
        return True

    def set_public(self, object_key: str) -> str:
        try:
            self._s3.put_object_acl(Bucket=self.bucket_name, Key=object_key, ACL="public-read")
        except (BotoCoreError, ClientError) as e:
            raise StorageAdapterUnavailable(f"ACL update for s3://{self.bucket_name}/{object_key} failed: {e}") from e

        return self.public_url(object_key)

    def public_url(self, object_key: str) -> str:
        if settings.AWS_S3_BASE_URL:
            return f"{settings.AWS_S3_BASE_URL.rstrip('/')}/{object_key}"
        return f"https://{self.bucket_name}.s3.{settings.AWS_REGION}.amazonaws.com/{object_key}"

    def get_backend_name(self) -> str:
        return "s3"
