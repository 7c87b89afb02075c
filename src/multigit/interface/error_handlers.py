"""Global exception handlers — translate forge errors to HTTP responses.

Every failure uses the ``{"status": "error", "message": "..."}`` envelope.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from multigit.domain.exceptions import (
    DeserializationError,
    TransportError,
    TransportErrorKind,
)
from multigit.interface.schemas import ErrorResponse

logger = logging.getLogger(__name__)

_KIND_STATUS: dict[TransportErrorKind, int] = {
    TransportErrorKind.NOT_FOUND: 404,
    TransportErrorKind.UNAUTHORIZED: 403,
    TransportErrorKind.VALIDATION: 422,
    TransportErrorKind.CONFLICT: 409,
    TransportErrorKind.RATE_LIMITED: 429,
    TransportErrorKind.UNAVAILABLE: 502,
    TransportErrorKind.NETWORK: 502,
    TransportErrorKind.UNHANDLED: 502,
}


def _error_json(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach exception handlers to the FastAPI application."""

    @app.exception_handler(TransportError)
    async def transport_handler(request: Request, exc: TransportError) -> JSONResponse:
        logger.warning("%s: %s", type(exc).__name__, exc)
        return _error_json(_KIND_STATUS.get(exc.kind, 502), exc.error_message())

    @app.exception_handler(DeserializationError)
    async def deserialization_handler(
        request: Request, exc: DeserializationError
    ) -> JSONResponse:
        logger.warning("%s: %s", type(exc).__name__, exc.error_message())
        if exc.extra_info():
            logger.debug("Raw response: %s", exc.extra_info())
        return _error_json(502, exc.error_message())

    @app.exception_handler(RequestValidationError)
    async def validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        messages = []
        for err in exc.errors():
            loc = " → ".join(str(p) for p in err.get("loc", []))
            messages.append(f"{loc}: {err.get('msg', 'validation error')}")
        return _error_json(422, "; ".join(messages))

    @app.exception_handler(Exception)
    async def generic_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception")
        return _error_json(500, "An unexpected error occurred. Please try again later.")
