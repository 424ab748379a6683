"""
Exception handlers for the HTTP adapter.

Translates the engine's error taxonomy into status codes:
- NotFoundError: 404
- ValidationError, NoFieldsError: 400
- ForbiddenError: 403
- ConflictError: 409
- StoreError: 500 (driver message passed through unchanged)
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dyntable.runtime.errors import (
    ConflictError,
    DyntableError,
    ForbiddenError,
    NoFieldsError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from dyntable.runtime.logging import get_api_logger, log_with_context

STATUS_CODES: dict[type[DyntableError], int] = {
    NotFoundError: 404,
    ValidationError: 400,
    NoFieldsError: 400,
    ForbiddenError: 403,
    ConflictError: 409,
    StoreError: 500,
}


def status_code_for(exc: DyntableError) -> int:
    """Find the status code for an engine error, walking its MRO."""
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the engine error handler on a FastAPI application.

    Args:
        app: FastAPI application instance
    """
    logger = get_api_logger()

    @app.exception_handler(DyntableError)
    async def engine_error_handler(request: Request, exc: DyntableError) -> JSONResponse:
        """Convert engine errors to JSON responses."""
        status_code = status_code_for(exc)
        if status_code >= 500:
            log_with_context(
                logger,
                logging.ERROR,
                f"{request.method} {request.url.path} failed: {exc}",
                error_type=exc.error_type,
            )

        content: dict[str, object] = {"detail": str(exc), "type": exc.error_type}
        if isinstance(exc, ValidationError):
            content["errors"] = exc.errors
        return JSONResponse(status_code=status_code, content=content)
