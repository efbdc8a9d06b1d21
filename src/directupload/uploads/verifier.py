"""Upload verification.

Confirms that a client's direct upload landed in storage and moves its
session from ``pending`` to ``verified``. Verification races the reclamation
sweeper on the same row; whichever conditional write lands first decides the
outcome and the other side reports what the row now says.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from directupload.storage.base import ObjectInfo, StorageAdapter
from directupload.uploads.exceptions import (
    AlreadyFinalized,
    ConcurrentModification,
    FileTooLarge,
    NotFound,
    ObjectNotFound,
    StorageAdapterUnavailable,
    WindowExpired,
)
from directupload.uploads.models import UploadSession, UploadState, utcnow
from directupload.uploads.store import SessionStore

logger = logging.getLogger(__name__)

NOT_FOUND_STATUS = "not-found"


@dataclass
class VerificationResult:
    token: str
    object_key: str
    final_location: str
    verified_at: datetime


class UploadVerifier:
    """Confirms uploads and reports session status."""

    def __init__(
        self,
        store: SessionStore,
        storage: StorageAdapter,
        clock: Callable[[], datetime] = utcnow,
        promote_on_verify: bool = True,
    ):
        self.store = store
        self.storage = storage
        self.clock = clock
        self.promote_on_verify = promote_on_verify

    def verify(self, token: str) -> VerificationResult:
        """Verify the upload behind ``token``.

        Calling this again on a verified session returns the same result
        without touching the row or the storage backend.

        Raises:
            NotFound: No session for this token
            AlreadyFinalized: Session already expired or reclaimed
            WindowExpired: Validity window lapsed (possibly during this call)
            ObjectNotFound: Object not in storage yet; retry until expiry
            FileTooLarge: Object exceeded the size limit and was deleted
            ConcurrentModification: Lost the conditional write twice
        """
        upload = self.store.get(token)
        if upload is None:
            raise NotFound(f"No upload session for token {token[:8]}")

        if upload.upload_state is UploadState.VERIFIED:
            return self._result_from(upload)
        if upload.upload_state.is_terminal:
            raise AlreadyFinalized(f"Upload session is {upload.state}")

        self._check_window(upload)
        self._check_object(upload)

        final_location = self.storage.public_url(upload.object_key)
        for attempt in range(2):
            now = self.clock()
            if self.store.transition(
                upload.token,
                upload.version,
                UploadState.PENDING,
                UploadState.VERIFIED,
                not_expired_at=now,
                verified_at=now,
                final_location=final_location,
            ):
                logger.info(
                    f"Upload verified: token={token[:8]}, object_key={upload.object_key}",
                    extra={"object_key": upload.object_key, "category": upload.category},
                )
                self._promote(upload.object_key)
                return VerificationResult(
                    token=upload.token,
                    object_key=upload.object_key,
                    final_location=final_location,
                    verified_at=now,
                )

            # Lost the conditional write: report what the row says now
            upload = self.store.get(token)
            if upload is None:
                raise NotFound(f"No upload session for token {token[:8]}")
            if upload.upload_state is UploadState.VERIFIED:
                return self._result_from(upload)
            if upload.upload_state.is_terminal:
                raise WindowExpired("Upload window expired, request a new credential")
            self._check_window(upload)

            logger.warning(
                f"Verification lost a concurrent update for token={token[:8]} (attempt {attempt + 1})"
            )

        raise ConcurrentModification("Upload session changed during verification, retry")

    def status(self, token: str) -> str:
        """Read-only lifecycle status for ``token``.

        A pending session whose window has passed reports ``expired`` even
        before the sweeper has claimed it.
        """
        upload = self.store.get(token)
        if upload is None:
            return NOT_FOUND_STATUS
        if upload.upload_state is UploadState.PENDING and upload.is_expired(self.clock()):
            return UploadState.EXPIRED.value
        return upload.state

    def _check_window(self, upload: UploadSession) -> None:
        """Expire the session and fail if its window has passed."""
        if not upload.is_expired(self.clock()):
            return

        # Either this call or the sweeper moves the row; the answer is the same
        self.store.transition(upload.token, upload.version, UploadState.PENDING, UploadState.EXPIRED)
        raise WindowExpired("Upload window expired, request a new credential")

    def _check_object(self, upload: UploadSession) -> None:
        info = self._stat(upload.object_key)
        if not info.exists:
            raise ObjectNotFound("File not found in storage yet, retry shortly")

        if info.size is not None and info.size > upload.max_size_bytes:
            try:
                self.storage.delete(upload.object_key)
            except StorageAdapterUnavailable as e:
                logger.warning(f"Could not delete oversized object {upload.object_key}: {e}")
            raise FileTooLarge(
                f"File too large ({info.size} bytes). Max: {upload.max_size_bytes} bytes"
            )

    def _stat(self, object_key: str) -> ObjectInfo:
        try:
            return self.storage.stat(object_key)
        except StorageAdapterUnavailable as e:
            # Ambiguous evidence never verifies
            logger.warning(f"Existence check failed for {object_key}, treating as missing: {e}")
            return ObjectInfo(exists=False)

    def _promote(self, object_key: str) -> None:
        if not self.promote_on_verify:
            return
        try:
            self.storage.set_public(object_key)
        except StorageAdapterUnavailable as e:
            logger.error(f"Failed to make {object_key} public after verification: {e}", exc_info=True)

    @staticmethod
    def _result_from(upload: UploadSession) -> VerificationResult:
        return VerificationResult(
            token=upload.token,
            object_key=upload.object_key,
            final_location=upload.final_location,
            verified_at=upload.verified_at,
        )
