"""
=============================================================================
CONTACT RELAY - ERROR HANDLING MODULE
=============================================================================
Global exception handlers for secure, uniform error responses.

Every error leaves the service as ``{"success": false, "message": ...}``.

Features:
- Unknown routes and unsupported methods answer 404 "Route not found"
- HTTPException details are passed through (rate limiter, body guard)
- Unhandled exceptions are logged with traceback server-side and answered
  with a generic 500; nothing internal reaches the body

Usage:
    from contact_api.core.errors import register_exception_handlers
    register_exception_handlers(app)
=============================================================================
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

ROUTE_NOT_FOUND_MESSAGE = "Route not found"
INVALID_BODY_MESSAGE = "Invalid request body"
INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Wrong method on a known path is reported like an unknown path.
        if exc.status_code in (404, 405):
            return error_response(404, ROUTE_NOT_FOUND_MESSAGE)

        message = exc.detail if isinstance(exc.detail, str) else INTERNAL_ERROR_MESSAGE
        return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info("Request validation failed on %s: %s", request.url.path, exc.errors())
        return error_response(400, INVALID_BODY_MESSAGE)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all handler for unhandled exceptions.

        - Logs the full traceback for debugging
        - Returns a generic error message to prevent info leakage
        """
        logger.error(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return error_response(500, INTERNAL_ERROR_MESSAGE)
