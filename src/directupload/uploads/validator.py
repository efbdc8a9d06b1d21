"""Client file name validation."""

import unicodedata

from directupload.uploads.exceptions import InvalidExtension
from directupload.uploads.policy import CategoryPolicy

MAX_FILENAME_LENGTH = 255


def validate_filename(filename: str, policy: CategoryPolicy) -> str:
    """Validate a client-declared file name against a category policy.

    Args:
        filename: File name as declared by the client
        policy: Policy of the requested category

    Returns:
        The lowercase extension including its leading dot, e.g. ``.jpg``

    Raises:
        InvalidExtension: With the reason the name was rejected
    """
    if not filename or not filename.strip():
        raise InvalidExtension("File name is empty")

    if len(filename) > MAX_FILENAME_LENGTH:
        raise InvalidExtension(f"File name longer than {MAX_FILENAME_LENGTH} characters")

    if "/" in filename or "\\" in filename:
        raise InvalidExtension("File name must not contain path separators")

    if any(unicodedata.category(ch) == "Cc" for ch in filename):
        raise InvalidExtension("File name must not contain control characters")

    parts = filename.split(".")
    if len(parts) > 2:
        raise InvalidExtension(
            "Only single extensions allowed (e.g. .jpg, not .exe.jpg)"
        )
    if len(parts) < 2 or not parts[1]:
        raise InvalidExtension("File name has no extension")
    if not parts[0].strip():
        raise InvalidExtension("File name has no base name")

    extension = f".{parts[1].lower()}"
    if extension not in policy.allowed_extensions:
        allowed = ", ".join(sorted(policy.allowed_extensions))
        raise InvalidExtension(
            f"File extension {extension} not allowed for {policy.name}. Allowed: {allowed}"
        )

    return extension
