"""
Liveness endpoint.

Reports status, a UTC timestamp and seconds since startup. Never touches
the record store or the mail relay.
"""
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from contact_api.schemas.contact import HealthResponse

router = APIRouter()


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns status, timestamp and uptime for monitoring and uptime checks.",
)
async def health_check(request: Request) -> HealthResponse:
    started_at = request.app.state.started_at
    return HealthResponse(
        status="OK",
        timestamp=utc_timestamp(),
        uptime=max(time.monotonic() - started_at, 0.0),
    )
