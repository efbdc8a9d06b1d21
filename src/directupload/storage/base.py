"""Abstract storage adapter interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta


@dataclass
class WriteCredential:
    """Time-limited permission to write exactly one object.

    ``fields`` is set for form-based (POST) credentials: the client sends
    them as multipart form fields ahead of the file.
    """

    url: str
    method: str
    headers: dict[str, str] = field(default_factory=dict)
    fields: dict[str, str] = field(default_factory=dict)
    expires_at: datetime | None = None


@dataclass
class ObjectInfo:
    """Result of an existence check."""

    exists: bool
    size: int | None = None


class StorageAdapter(ABC):
    """Abstract base class for object store backends.

    Implementations raise ``StorageAdapterUnavailable`` for backend errors
    and timeouts, never the client library's own exceptions.
    """

    @abstractmethod
    def issue_write_credential(
        self,
        object_key: str,
        validity: timedelta,
        max_size_bytes: int,
        content_type: str,
    ) -> WriteCredential:
        """Issue a write credential scoped to ``object_key``.

        Args:
            object_key: Key the client may write
            validity: How long the credential stays usable
            max_size_bytes: Upper bound on the object size, where enforceable
            content_type: MIME type the upload must declare

        Returns:
            Credential to hand to the client
        """
        pass

    @abstractmethod
    def stat(self, object_key: str) -> ObjectInfo:
        """Check whether the object exists and how large it is."""
        pass

    @abstractmethod
    def delete(self, object_key: str) -> bool:
        """Delete the object.

        Returns:
            True if an object was deleted, False if it was already absent
        """
        pass

    @abstractmethod
    def set_public(self, object_key: str) -> str:
        """Make the object publicly readable and return its public location."""
        pass

    @abstractmethod
    def public_url(self, object_key: str) -> str:
        """Public location of the object (no I/O)."""
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
        pass
