from sqlalchemy import Column, String, Text
from sqlalchemy.orm import validates

from contact_api.db.base import Base, CreatedAtMixin, UUIDMixin

NAME_MAX = 100
EMAIL_MAX = 254
SUBJECT_MAX = 200
MESSAGE_MAX = 1000
SOURCE_IP_MAX = 64
CLIENT_AGENT_MAX = 512


class ContactSubmissionError(ValueError):
    """Raised by the model when a column value breaks its constraints."""


class ContactSubmission(UUIDMixin, CreatedAtMixin, Base):
    """
    One accepted contact-form submission.

    Rows are inserted once and never updated or deleted by the service.
    """

    __tablename__ = "contact_submissions"

    name = Column(String(NAME_MAX), nullable=False)
    email = Column(String(EMAIL_MAX), nullable=False, index=True)
    subject = Column(String(SUBJECT_MAX), nullable=False)
    message = Column(Text, nullable=False)
    source_ip = Column(String(SOURCE_IP_MAX), nullable=True)
    client_agent = Column(String(CLIENT_AGENT_MAX), nullable=True)

    @validates("name", "email", "subject", "message")
    def _validate_text(self, key, value):
        limits = {
            "name": NAME_MAX,
            "email": EMAIL_MAX,
            "subject": SUBJECT_MAX,
            "message": MESSAGE_MAX,
        }
        if value is None or not str(value).strip():
            raise ContactSubmissionError(f"{key} is required")
        value = str(value).strip()
        if key == "email":
            value = value.lower()
        if len(value) > limits[key]:
            raise ContactSubmissionError(f"{key} exceeds {limits[key]} characters")
        return value

    @validates("source_ip")
    def _validate_source_ip(self, key, value):
        return value[:SOURCE_IP_MAX] if value else None

    @validates("client_agent")
    def _validate_client_agent(self, key, value):
        return value[:CLIENT_AGENT_MAX] if value else None

    def __repr__(self) -> str:
        return f"<ContactSubmission id={self.id} received_at={self.received_at}>"
