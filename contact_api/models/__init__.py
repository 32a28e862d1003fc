"""
All ORM models in one place.

Usage:
    from contact_api.models import Base, ContactSubmission
"""

from contact_api.db.base import Base
from contact_api.models.contact import ContactSubmission, ContactSubmissionError

__all__ = ["Base", "ContactSubmission", "ContactSubmissionError"]
