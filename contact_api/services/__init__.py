"""
Contact pipeline services.

Services:
    - validator: pure field validation and normalization
    - record_store: submission persistence (SQLAlchemy)
    - notifier: SMTP relay for notification emails
    - email_templates: HTML and plain-text bodies
    - contact_service: the request handler composing the above
"""

from .contact_service import ContactOutcome, ContactService, RequestMetadata
from .notifier import Notifier, OutgoingEmail, SmtpNotifier
from .record_store import RecordStore, SqlAlchemyRecordStore, Submission
from .validator import ValidatedContact, validate_submission

__all__ = [
    "ContactOutcome",
    "ContactService",
    "RequestMetadata",
    "Notifier",
    "OutgoingEmail",
    "SmtpNotifier",
    "RecordStore",
    "SqlAlchemyRecordStore",
    "Submission",
    "ValidatedContact",
    "validate_submission",
]
