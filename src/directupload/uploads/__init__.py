"""Direct-to-storage upload lifecycle: issue, verify, reclaim."""

from directupload.uploads.exceptions import (
    AlreadyFinalized,
    ConcurrentModification,
    FileTooLarge,
    InvalidExtension,
    NotFound,
    ObjectNotFound,
    StorageAdapterUnavailable,
    UnknownCategory,
    UploadError,
    WindowExpired,
)

__all__ = [
    "AlreadyFinalized",
    "ConcurrentModification",
    "FileTooLarge",
    "InvalidExtension",
    "NotFound",
    "ObjectNotFound",
    "StorageAdapterUnavailable",
    "UnknownCategory",
    "UploadError",
    "WindowExpired",
]
