"""Exception handlers mapping service errors onto enveloped HTTP responses."""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse

from rabbit_ai.api.responses import envelope
from rabbit_ai.chat.models import ChatCompletionError
from rabbit_ai.core.errors import RabbitError

logger = logging.getLogger(__name__)


async def rabbit_exception_handler(request: Request, exc: RabbitError) -> ORJSONResponse:
    """Render a RabbitError with its mapped status code."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    body = envelope(message=exc.message, code=exc.status_code)
    body["error"] = exc.code
    if isinstance(exc, ChatCompletionError):
        body["data"] = {"remote_code": exc.remote_code, "remote_message": exc.remote_message}
    return ORJSONResponse(body, status_code=exc.status_code)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    """Malformed request bodies and parameters."""
    body = envelope(message="Invalid request parameters", code=400)
    body["details"] = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()
    ]
    return ORJSONResponse(body, status_code=400)


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Exception handler for unexpected errors."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return ORJSONResponse(
        envelope(message="An unexpected error occurred", code=500), status_code=500
    )
