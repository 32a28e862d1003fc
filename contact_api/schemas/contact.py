from pydantic import BaseModel, Field


class ContactRequest(BaseModel):
    """Documented shape of the contact body; the route parses it leniently."""

    name: str = Field(..., max_length=100, examples=["Jane Doe"])
    email: str = Field(..., max_length=254, examples=["jane@example.com"])
    subject: str = Field(..., max_length=200, examples=["Hello"])
    message: str = Field(..., max_length=1000, examples=["Hi there"])


class ContactResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    status: str = Field(..., examples=["OK"])
    timestamp: str = Field(..., description="ISO-8601 UTC timestamp")
    uptime: float = Field(..., ge=0, description="Seconds since the service started")
