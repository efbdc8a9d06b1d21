"""Upload credential issuance."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from directupload.storage.base import StorageAdapter, WriteCredential
from directupload.uploads.models import UploadSession, UploadState, utcnow
from directupload.uploads.policy import PolicyTable, content_type_for_extension
from directupload.uploads.store import SessionStore
from directupload.uploads.tokens import build_object_key, new_session_token
from directupload.uploads.validator import validate_filename

logger = logging.getLogger(__name__)


@dataclass
class IssuedCredential:
    """Everything the client needs to upload and later verify."""

    token: str
    object_key: str
    write_credential: WriteCredential
    issued_at: datetime
    expires_at: datetime
    max_size_bytes: int
    allowed_extensions: list[str]
    content_type: str
    public_url: str

    @property
    def expires_in(self) -> int:
        """Seconds the credential stays valid from issuance."""
        return int((self.expires_at - self.issued_at).total_seconds())


class CredentialIssuer:
    """Validates a requested upload and issues a scoped write credential."""

    def __init__(
        self,
        store: SessionStore,
        storage: StorageAdapter,
        policies: PolicyTable,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.storage = storage
        self.policies = policies
        self.clock = clock

    def issue(
        self,
        category: str,
        owner_context: dict[str, str],
        declared_filename: str,
    ) -> IssuedCredential:
        """Issue a write credential for one upload.

        The storage credential is obtained before the session row is written,
        so a storage failure leaves nothing behind.

        Args:
            category: Upload category name
            owner_context: Identifiers of the owning business entity
            declared_filename: File name declared by the client

        Returns:
            IssuedCredential

        Raises:
            UnknownCategory: If the category is not configured
            InvalidExtension: If the file name is rejected
            StorageAdapterUnavailable: If no credential could be obtained
        """
        policy = self.policies.get(category)
        extension = validate_filename(declared_filename, policy)

        token = new_session_token()
        object_key = build_object_key(policy, extension)
        content_type = content_type_for_extension(extension)

        issued_at = self.clock()
        expires_at = issued_at + policy.validity_window

        write_credential = self.storage.issue_write_credential(
            object_key=object_key,
            validity=policy.validity_window,
            max_size_bytes=policy.max_size_bytes,
            content_type=content_type,
        )

        allowed_extensions = sorted(policy.allowed_extensions)
        self.store.create(
            UploadSession(
                token=token,
                category=policy.name,
                owner_context={str(k): str(v) for k, v in (owner_context or {}).items()},
                object_key=object_key,
                content_type=content_type,
                allowed_extensions=allowed_extensions,
                max_size_bytes=policy.max_size_bytes,
                state=UploadState.PENDING.value,
                issued_at=issued_at,
                expires_at=expires_at,
                version=0,
            )
        )

        logger.info(
            f"Upload credential issued: token={token[:8]}, category={policy.name}, "
            f"object_key={object_key}, backend={self.storage.get_backend_name()}",
            extra={"category": policy.name, "object_key": object_key},
        )

        return IssuedCredential(
            token=token,
            object_key=object_key,
            write_credential=write_credential,
            issued_at=issued_at,
            expires_at=expires_at,
            max_size_bytes=policy.max_size_bytes,
            allowed_extensions=allowed_extensions,
            content_type=content_type,
            public_url=self.storage.public_url(object_key),
        )
