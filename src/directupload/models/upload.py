"""Upload API data models."""

from datetime import datetime
from typing import Dict, List, Literal

from pydantic import BaseModel, Field


class CreateCredentialRequest(BaseModel):
    """Request model for issuing an upload credential."""

    category: str
    file_name: str
    owner_context: Dict[str, str] = Field(default_factory=dict)


class CredentialResponse(BaseModel):
    """Response model for an issued upload credential."""

    token: str
    upload_url: str
    method: str
    headers: Dict[str, str]
    fields: Dict[str, str] = Field(default_factory=dict)
    expires_at: datetime
    expires_in: int
    max_size_bytes: int
    allowed_extensions: List[str]
    content_type: str
    object_key: str
    public_url: str


class VerifyResponse(BaseModel):
    """Response model for a verified upload."""

    token: str
    status: Literal["verified"] = "verified"
    final_location: str
    verified_at: datetime


class UploadStatusResponse(BaseModel):
    """Response model for the read-only status query."""

    token: str
    status: Literal["pending", "verified", "expired", "reclaimed", "not-found"]


class ErrorResponse(BaseModel):
    """Error body for upload lifecycle failures."""

    code: str
    detail: str
    retryable: bool = False
