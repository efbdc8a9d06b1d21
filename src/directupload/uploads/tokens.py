"""Unpredictable identifiers for sessions and stored objects."""

import secrets

from directupload.uploads.policy import CategoryPolicy


def new_session_token() -> str:
    return secrets.token_urlsafe(32)


def new_object_id() -> str:
    return secrets.token_hex(16)


def build_object_key(policy: CategoryPolicy, extension: str) -> str:
    """Build ``<prefix>/<random id><ext>``; the client's file name never appears."""
    prefix = policy.path_prefix.strip("/")
    name = f"{new_object_id()}{extension}"
    return f"{prefix}/{name}" if prefix else name
