"""Google Cloud Storage adapter."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage
from google.oauth2 import service_account
from requests.exceptions import RequestException

from directupload.core.config import settings
from directupload.storage.base import ObjectInfo, StorageAdapter, WriteCredential
from directupload.uploads.exceptions import StorageAdapterUnavailable

logger = logging.getLogger(__name__)

PUBLIC_CACHE_CONTROL = "public, max-age=31536000"

_BACKEND_ERRORS = (GoogleAPIError, GoogleAuthError, RequestException)


class GCSStorageAdapter(StorageAdapter):
    """Google Cloud Storage adapter issuing V4 signed PUT URLs."""

    def __init__(self, bucket_name: str | None = None, timeout: float | None = None):
        self.bucket_name = bucket_name or settings.GCS_BUCKET_NAME
        self.timeout = timeout if timeout is not None else settings.STORAGE_TIMEOUT_SECONDS
        self._client: Optional[storage.Client] = None
        self._bucket: Optional[storage.Bucket] = None

    def _get_bucket(self) -> storage.Bucket:
        """Lazy-load and cache GCS bucket."""
        if self._bucket is None:
            if not self.bucket_name:
                raise ValueError("GCS_BUCKET_NAME not configured")

            if settings.GCS_CREDENTIALS_FILE:
                self._client = storage.Client.from_service_account_json(
                    settings.GCS_CREDENTIALS_FILE, project=settings.GCP_PROJECT_ID or None
                )
            else:
                self._client = storage.Client(project=settings.GCP_PROJECT_ID or None)
            self._bucket = self._client.bucket(self.bucket_name)

        return self._bucket

    def _signing_credentials(self) -> tuple[Optional[service_account.Credentials], Optional[str]]:
        """Credentials able to sign URLs.

        With a key file the client's own credentials sign. Without one, the
        compute engine identity signs through the IAM signBlob API; the
        service account needs roles/iam.serviceAccountTokenCreator on itself.
        """
        if settings.GCS_CREDENTIALS_FILE:
            return None, None

        from google.auth import compute_engine, iam
        from google.auth.transport import requests as auth_requests

        credentials = compute_engine.Credentials()
        auth_request = auth_requests.Request()
        credentials.refresh(auth_request)
        service_account_email = credentials.service_account_email

        signer = iam.Signer(
            request=auth_request,
            credentials=credentials,
            service_account_email=service_account_email,
        )
        # token_uri is required by the constructor; signing goes through the IAM signer
        signing_creds = service_account.Credentials(
            signer=signer,
            service_account_email=service_account_email,
            token_uri="https://oauth2.googleapis.com/token",
        )
        return signing_creds, service_account_email

    def issue_write_credential(
        self,
        object_key: str,
        validity: timedelta,
        max_size_bytes: int,
        content_type: str,
    ) -> WriteCredential:
        headers = {
            "Content-Type": content_type,
            "x-goog-content-length-range": f"0,{max_size_bytes}",
        }

        try:
            blob = self._get_bucket().blob(object_key)
            signing_creds, service_account_email = self._signing_credentials()

            signed_url = blob.generate_signed_url(
                version="v4",
                expiration=validity,
                method="PUT",
                content_type=content_type,
                headers=headers,
                credentials=signing_creds,
                service_account_email=service_account_email,
            )
        except _BACKEND_ERRORS as e:
            logger.error(f"Failed to generate signed URL for {object_key}: {e}", exc_info=True)
            raise StorageAdapterUnavailable(f"Failed to generate signed URL: {e}") from e

        return WriteCredential(
            url=signed_url,
            method="PUT",
            headers=headers,
            expires_at=datetime.now(timezone.utc) + validity,
        )

    def stat(self, object_key: str) -> ObjectInfo:
        blob = self._get_bucket().blob(object_key)
        try:
            blob.reload(timeout=self.timeout)
        except NotFound:
            return ObjectInfo(exists=False)
        except _BACKEND_ERRORS as e:
            raise StorageAdapterUnavailable(f"Failed to stat gs://{self.bucket_name}/{object_key}: {e}") from e

        return ObjectInfo(exists=True, size=blob.size)

    def delete(self, object_key: str) -> bool:
        blob = self._get_bucket().blob(object_key)
        try:
            blob.delete(timeout=self.timeout)
        except NotFound:
            return False
        except _BACKEND_ERRORS as e:
            raise StorageAdapterUnavailable(f"Failed to delete gs://{self.bucket_name}/{object_key}: {e}") from e

        logger.info(f"Deleted gs://{self.bucket_name}/{object_key}")
        return True

    def set_public(self, object_key: str) -> str:
        blob = self._get_bucket().blob(object_key)
        try:
            blob.make_public(timeout=self.timeout)
            blob.cache_control = PUBLIC_CACHE_CONTROL
            blob.patch(timeout=self.timeout)
        except _BACKEND_ERRORS as e:
            raise StorageAdapterUnavailable(f"Failed to publish gs://{self.bucket_name}/{object_key}: {e}") from e

        return self.public_url(object_key)

    def public_url(self, object_key: str) -> str:
        return f"https://storage.googleapis.com/{self.bucket_name}/{object_key}"

    def get_backend_name(self) -> str:
        return "gcs"
