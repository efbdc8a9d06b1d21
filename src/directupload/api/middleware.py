"""Middleware for HTTP error logging."""

import logging
import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from directupload.core.logging import upload_token_context

logger = logging.getLogger(__name__)

_TOKEN_PATH = re.compile(r"^/api/v1/uploads/(?!credentials$|local/)([^/]+)")


class HTTPErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to ensure all HTTP errors are logged.

    - 4xx responses: logged at WARN level
    - 5xx responses: logged at ERROR level
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        upload_token = None
        match = _TOKEN_PATH.match(request.url.path)
        if match:
            upload_token = match.group(1)
            upload_token_context.set(upload_token)

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        details = {
            "http_status": response.status_code,
            "method": request.method,
            "path": request.url.path,
            "upload_token": upload_token,
            "duration_ms": duration_ms,
        }

        if 400 <= response.status_code < 500:
            logger.warning("Client error response", extra=details)
        elif response.status_code >= 500:
            logger.error("Server error response", extra=details)

        return response
