from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from services.media.domain.errors import IncompleteUploadError, MediaServiceError

logger = logging.getLogger(__name__)


def success(data: Any = None, message: str = "success", code: int = 200) -> dict:
    return {"code": code, "message": message, "data": data}


def failure(
    code: int, message: str, error: Any = None, **extra: Any
) -> JSONResponse:
    body = {"code": code, "message": message, "error": error}
    body.update(extra)
    return JSONResponse(status_code=code, content=body)


def install_error_handlers(app: FastAPI, *, debug: bool = False) -> None:
    """Render every failure in the ``{code, message, error}`` envelope."""

    @app.exception_handler(MediaServiceError)
    async def media_error_handler(request: Request, exc: MediaServiceError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        extra = {}
        if isinstance(exc, IncompleteUploadError):
            extra = {"uploadedChunks": exc.uploaded_chunks, "expected": exc.expected}
        return failure(exc.status_code, exc.message, type(exc).__name__, **extra)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = [
            ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            for error in exc.errors()
        ]
        return failure(400, f"Invalid request fields: {', '.join(fields)}", "ValidationError")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return failure(500, "Internal server error", str(exc) if debug else None)
