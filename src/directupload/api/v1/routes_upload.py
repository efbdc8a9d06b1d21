"""Upload API routes."""

import logging
from typing import Callable

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool

from directupload.core.logging import upload_token_context
from directupload.models.upload import (
    CreateCredentialRequest,
    CredentialResponse,
    ErrorResponse,
    UploadStatusResponse,
    VerifyResponse,
)
from directupload.storage.local import LocalStorageAdapter, ObjectTooLarge
from directupload.uploads.exceptions import UploadError
from directupload.uploads.service import UploadServices

router = APIRouter(prefix="/api/v1/uploads", tags=["upload"])
logger = logging.getLogger(__name__)

UploadAuthorizer = Callable[[str, dict[str, str]], bool]

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    410: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def get_upload_services(request: Request) -> UploadServices:
    return request.app.state.upload_services


def _allow_all(category: str, owner_context: dict[str, str]) -> bool:
    return True


def get_upload_authorizer() -> UploadAuthorizer:
    """Pre-authorization hook for credential requests.

    The authorization layer overrides this dependency; the default allows
    every request.
    """
    return _allow_all


@router.post(
    "/credentials",
    response_model=CredentialResponse,
    status_code=201,
    responses=_ERROR_RESPONSES,
)
async def issue_upload_credential(
    request: CreateCredentialRequest = Body(...),
    services: UploadServices = Depends(get_upload_services),
    authorize: UploadAuthorizer = Depends(get_upload_authorizer),
) -> CredentialResponse:
    """Issue a short-lived credential for a direct upload to storage."""
    try:
        if not authorize(request.category, request.owner_context):
            raise HTTPException(status_code=403, detail="Not allowed to upload to this category")

        issued = await run_in_threadpool(
            services.issuer.issue,
            request.category,
            request.owner_context,
            request.file_name,
        )

        return CredentialResponse(
            token=issued.token,
            upload_url=issued.write_credential.url,
            method=issued.write_credential.method,
            headers=issued.write_credential.headers,
            fields=issued.write_credential.fields,
            expires_at=issued.expires_at,
            expires_in=issued.expires_in,
            max_size_bytes=issued.max_size_bytes,
            allowed_extensions=issued.allowed_extensions,
            content_type=issued.content_type,
            object_key=issued.object_key,
            public_url=issued.public_url,
        )

    except (HTTPException, UploadError):
        raise
    except Exception as e:
        logger.error(f"Unexpected error during credential issuance: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/{token}/verify", response_model=VerifyResponse, responses=_ERROR_RESPONSES)
async def verify_upload(
    token: str,
    services: UploadServices = Depends(get_upload_services),
) -> VerifyResponse:
    """Confirm a direct upload and publish the stored object."""
    upload_token_context.set(token)
    try:
        result = await run_in_threadpool(services.verifier.verify, token)
        return VerifyResponse(
            token=result.token,
            final_location=result.final_location,
            verified_at=result.verified_at,
        )

    except (HTTPException, UploadError):
        raise
    except Exception as e:
        logger.error(f"Unexpected error during upload verification: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{token}", response_model=UploadStatusResponse)
async def get_upload_status(
    token: str,
    services: UploadServices = Depends(get_upload_services),
) -> UploadStatusResponse:
    """Read-only lifecycle status of an upload session."""
    status = await run_in_threadpool(services.verifier.status, token)
    return UploadStatusResponse(token=token, status=status)


@router.put("/local/{object_key:path}", status_code=204)
async def local_upload(
    object_key: str,
    request: Request,
    max_size: int = Query(...),
    expires: int = Query(...),
    signature: str = Query(...),
    services: UploadServices = Depends(get_upload_services),
) -> None:
    """Receive a direct upload when the local storage backend is active."""
    storage = services.storage
    if not isinstance(storage, LocalStorageAdapter):
        raise HTTPException(status_code=404, detail="Not found")

    if not storage.check_signature(object_key, max_size, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired upload signature")

    declared_length = request.headers.get("content-length", "")
    if declared_length.isdigit() and int(declared_length) > max_size:
        raise HTTPException(status_code=413, detail=f"Upload exceeds {max_size} bytes")

    try:
        size = await storage.write_stream(object_key, request.stream(), max_size)
    except ObjectTooLarge:
        raise HTTPException(status_code=413, detail=f"Upload exceeds {max_size} bytes")

    logger.info(f"Local upload stored: object_key={object_key}, size={size}")
