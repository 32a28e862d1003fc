from fastapi import Request

from contact_api.core.config import Settings
from contact_api.services.contact_service import ContactService


def get_settings(request: Request) -> Settings:
    """Settings the running app was built with."""
    return request.app.state.settings


def get_contact_service(request: Request) -> ContactService:
    """
    Contact service dependency.

    Usage:
        @router.post("/contact")
        async def submit(service: ContactService = Depends(get_contact_service)):
            ...
    """
    return request.app.state.contact_service
