"""Category policy table.

Maps each upload category to the extensions it accepts, its size limit, the
storage prefix objects land under and how long an issued credential stays
valid. The table is loaded once per process; sessions snapshot the values
they were issued with.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

import humanfriendly
import yaml

from directupload.core.config import settings
from directupload.uploads.exceptions import UnknownCategory

logger = logging.getLogger(__name__)

MB = 1024 * 1024

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
DOCUMENT_EXTENSIONS = (".pdf", ".doc", ".docx", ".ppt", ".pptx")
SCAN_EXTENSIONS = (".pdf", ".jpg", ".jpeg", ".png")

# name -> (extensions, max size in bytes)
DEFAULT_CATEGORIES: dict[str, tuple[tuple[str, ...], int]] = {
    "profile-images": (IMAGE_EXTENSIONS, 5 * MB),
    "institute-images": (IMAGE_EXTENSIONS, 10 * MB),
    "organization-images": (IMAGE_EXTENSIONS, 10 * MB),
    "student-images": (IMAGE_EXTENSIONS, 5 * MB),
    "cause-images": (IMAGE_EXTENSIONS, 10 * MB),
    "bookhire-images": ((".jpg", ".jpeg", ".png", ".webp"), 10 * MB),
    "advertisement-media": (IMAGE_EXTENSIONS + (".mp4", ".webm", ".pdf"), 100 * MB),
    "lecture-documents": (DOCUMENT_EXTENSIONS, 50 * MB),
    "lecture-covers": ((".jpg", ".jpeg", ".png", ".webp"), 5 * MB),
    "id-documents": (SCAN_EXTENSIONS, 10 * MB),
    "payment-receipts": (SCAN_EXTENSIONS, 10 * MB),
    "homework-submissions": ((".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png"), 20 * MB),
    "teacher-corrections": (SCAN_EXTENSIONS, 20 * MB),
}

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
}


@dataclass(frozen=True)
class CategoryPolicy:
    """Upload policy for one category."""

    name: str
    allowed_extensions: frozenset[str]
    max_size_bytes: int
    path_prefix: str
    validity_window: timedelta


def content_type_for_extension(extension: str) -> str:
    """Map a validated extension to the MIME type bound into the credential."""
    return CONTENT_TYPES.get(extension.lower(), "application/octet-stream")


def _normalize_extension(extension: str) -> str:
    extension = extension.strip().lower()
    return extension if extension.startswith(".") else f".{extension}"


def _parse_size(value: Any) -> int:
    if isinstance(value, int):
        return value
    return humanfriendly.parse_size(str(value))


def build_default_policies(validity_window: timedelta | None = None) -> dict[str, CategoryPolicy]:
    """Build the built-in category table."""
    if validity_window is None:
        validity_window = timedelta(seconds=settings.upload_validity_seconds)

    return {
        name: CategoryPolicy(
            name=name,
            allowed_extensions=frozenset(extensions),
            max_size_bytes=max_size,
            path_prefix=name,
            validity_window=validity_window,
        )
        for name, (extensions, max_size) in DEFAULT_CATEGORIES.items()
    }


def load_policy_table(path: str | None = None) -> dict[str, CategoryPolicy]:
    """Load the category table, applying the YAML overrides if configured.

    The YAML file maps category names to entries with ``extensions``,
    ``max_size`` (bytes or a size string such as ``5MB``) and optionally
    ``prefix`` and ``validity_minutes``. Entries replace built-in categories
    of the same name; new names add categories.

    Args:
        path: YAML file path. If None, uses CATEGORY_POLICY_PATH from settings.

    Returns:
        Mapping of category name to policy

    Raises:
        FileNotFoundError: If the override file doesn't exist
        ValueError: If an entry is malformed
    """
    if path is None:
        path = settings.CATEGORY_POLICY_PATH

    default_window = timedelta(seconds=settings.upload_validity_seconds)
    policies = build_default_policies(default_window)

    if not path:
        return policies

    policy_path = Path(path)
    if not policy_path.exists():
        raise FileNotFoundError(f"Category policy file not found: {policy_path}")

    with open(policy_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    for name, entry in (data.get("categories") or {}).items():
        if not entry or "extensions" not in entry or "max_size" not in entry:
            raise ValueError(f"Category {name!r} needs 'extensions' and 'max_size'")

        validity_minutes = entry.get("validity_minutes")
        policies[name] = CategoryPolicy(
            name=name,
            allowed_extensions=frozenset(_normalize_extension(e) for e in entry["extensions"]),
            max_size_bytes=_parse_size(entry["max_size"]),
            path_prefix=str(entry.get("prefix", name)).strip("/"),
            validity_window=(
                timedelta(minutes=validity_minutes) if validity_minutes else default_window
            ),
        )

    logger.info(f"Loaded category policy table from {policy_path}: {len(policies)} categories")
    return policies


class PolicyTable:
    """Immutable lookup over the loaded category policies."""

    def __init__(self, policies: dict[str, CategoryPolicy]):
        self._policies = dict(policies)

    def get(self, category: str) -> CategoryPolicy:
        """Resolve a category.

        Raises:
            UnknownCategory: If the category is not configured
        """
        policy = self._policies.get(category)
        if policy is None:
            raise UnknownCategory(f"Unknown upload category: {category}")
        return policy

    def categories(self) -> list[str]:
        return sorted(self._policies)


_policy_table: PolicyTable | None = None


def get_policy_table() -> PolicyTable:
    """Return the process-wide policy table, loading it on first use."""
    global _policy_table

    if _policy_table is None:
        _policy_table = PolicyTable(load_policy_table())
    return _policy_table
