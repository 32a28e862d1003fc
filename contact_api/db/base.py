import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UUIDMixin:
    """Adds a hex UUID primary key generated client-side."""

    id = Column(String(32), primary_key=True, default=_new_id)


class CreatedAtMixin:
    """Adds an insert-time timestamp that is never updated."""

    received_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
