"""
Public contact form endpoint.

Accepts JSON, url-encoded or multipart bodies, counts the request against
the caller's rate-limit window, then hands the parsed body to the
``ContactService``.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from contact_api.api.deps import get_contact_service, get_settings
from contact_api.core.config import Settings
from contact_api.core.errors import INVALID_BODY_MESSAGE
from contact_api.core.middleware import BODY_TOO_LARGE_MESSAGE
from contact_api.core.rate_limiter import enforce_contact_rate_limit
from contact_api.schemas.contact import ContactRequest, ContactResponse
from contact_api.services.contact_service import ContactService, RequestMetadata

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_URLENCODED = "application/x-www-form-urlencoded"
FORM_MULTIPART = "multipart/form-data"


async def _read_capped(request: Request, max_bytes: int) -> bytes:
    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=BODY_TOO_LARGE_MESSAGE,
            )
        chunks.append(chunk)
    return b"".join(chunks)


async def _parse_multipart(request: Request, raw: bytes) -> Dict[str, str]:
    # Parse from the already capped bytes, not the live stream
    async def receive():
        return {"type": "http.request", "body": raw, "more_body": False}

    capped = Request(request.scope, receive)
    try:
        async with capped.form() as form:
            return {key: value for key, value in form.items() if isinstance(value, str)}
    except StarletteHTTPException as exc:
        raise HTTPException(status_code=400, detail=INVALID_BODY_MESSAGE) from exc


async def read_contact_body(request: Request, max_bytes: int) -> Any:
    """Parse the request body into a mapping of form fields."""
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    raw = await _read_capped(request, max_bytes)

    if content_type == FORM_MULTIPART:
        return await _parse_multipart(request, raw)

    if content_type == FORM_URLENCODED:
        try:
            return dict(parse_qsl(raw.decode("utf-8"), keep_blank_values=True))
        except UnicodeDecodeError as exc:
            raise HTTPException(status_code=400, detail=INVALID_BODY_MESSAGE) from exc

    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise HTTPException(status_code=400, detail=INVALID_BODY_MESSAGE) from exc


@router.post(
    "/contact",
    response_model=ContactResponse,
    summary="Submit contact form",
    description="Validates the submission, stores it and emails a notification.",
    dependencies=[Depends(enforce_contact_rate_limit)],
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {"schema": ContactRequest.model_json_schema()},
                FORM_URLENCODED: {"schema": ContactRequest.model_json_schema()},
            },
            "required": True,
        }
    },
)
async def submit_contact(
    request: Request,
    service: ContactService = Depends(get_contact_service),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    raw_body = await read_contact_body(request, settings.MAX_BODY_BYTES)

    metadata = RequestMetadata(
        source_ip=getattr(request.state, "client_ip", None)
        or (request.client.host if request.client else None),
        client_agent=request.headers.get("user-agent"),
        request_id=getattr(request.state, "request_id", None),
    )
    outcome = await service.handle(raw_body, metadata)

    headers: Dict[str, str] = {}
    decision = getattr(request.state, "rate_limit", None)
    if decision is not None:
        headers.update(decision.headers())

    return JSONResponse(status_code=outcome.status_code, content=outcome.body, headers=headers)
