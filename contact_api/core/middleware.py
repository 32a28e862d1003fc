import logging
import uuid

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from contact_api.core.errors import INTERNAL_ERROR_MESSAGE, INVALID_BODY_MESSAGE, error_response

logger = logging.getLogger("contact_api.requests")

BODY_TOO_LARGE_MESSAGE = "Request body too large"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add X-Request-ID header for tracing.

    If the client sends X-Request-ID, it is preserved.
    Otherwise, a new UUID is generated.

    The request ID is:
    - Available in request.state.request_id for logging
    - Bound into the structlog context for the duration of the request
    - Returned in response headers for client correlation
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            logger.info(
                "REQUEST | id=%s | method=%s | path=%s",
                request_id,
                request.method,
                request.url.path,
            )
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers["X-Request-ID"] = request_id
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests whose declared Content-Length exceeds ``max_body_bytes``
    before any route reads the body. Chunked bodies without a length are
    capped while streaming (see ``contact_api.api.routes.contact``).
    """

    def __init__(self, app, max_body_bytes: int):
        super().__init__(app)
        self.max_body_bytes = max_body_bytes

    async def dispatch(self, request: Request, call_next):
        declared = request.headers.get("content-length")
        if declared is not None:
            try:
                too_large = int(declared) > self.max_body_bytes
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={"success": False, "message": INVALID_BODY_MESSAGE},
                )
            if too_large:
                logger.warning(
                    "Body rejected: declared %s bytes exceeds %s on %s",
                    declared,
                    self.max_body_bytes,
                    request.url.path,
                )
                return JSONResponse(
                    status_code=413,
                    content={"success": False, "message": BODY_TOO_LARGE_MESSAGE},
                )

        return await call_next(request)


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    """
    Turns an exception escaping the router into the generic 500 envelope.

    Registered innermost so the response still passes through the request
    id, CORS and security header middleware on its way out.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            return error_response(500, INTERNAL_ERROR_MESSAGE)
