"""Error taxonomy for the upload lifecycle.

Every error carries a stable ``code`` for clients, the HTTP status the API
answers with, and whether retrying the same call can succeed later.
"""


class UploadError(Exception):
    """Base exception for upload lifecycle failures."""

    code = "upload_error"
    status_code = 500
    retryable = False

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)


class UnknownCategory(UploadError):
    """Upload category is not configured."""

    code = "unknown_category"
    status_code = 400


class InvalidExtension(UploadError):
    """File name or extension rejected by the category policy."""

    code = "invalid_extension"
    status_code = 400


class FileTooLarge(UploadError):
    """Uploaded object exceeds the category size limit."""

    code = "file_too_large"
    status_code = 400
    retryable = True


class NotFound(UploadError):
    """No upload session exists for this token."""

    code = "not_found"
    status_code = 404


class WindowExpired(UploadError):
    """Upload window expired, request a new credential."""

    code = "window_expired"
    status_code = 410


class AlreadyFinalized(UploadError):
    """Upload session is already finalized."""

    code = "already_finalized"
    status_code = 409


class ObjectNotFound(UploadError):
    """Uploaded object not visible in storage yet."""

    code = "object_not_found"
    status_code = 409
    retryable = True


class ConcurrentModification(UploadError):
    """Upload session was modified concurrently."""

    code = "concurrent_modification"
    status_code = 409


class StorageAdapterUnavailable(UploadError):
    """Storage backend unavailable or timed out."""

    code = "storage_unavailable"
    status_code = 503
    retryable = True
