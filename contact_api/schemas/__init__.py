from .contact import ContactRequest, ContactResponse, HealthResponse

__all__ = ["ContactRequest", "ContactResponse", "HealthResponse"]
