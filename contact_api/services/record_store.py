"""
Record store for contact submissions.

Wraps the SQLAlchemy engine that the application opens at startup and
disposes at shutdown. Inserts return ``Ok(record_id)`` or a classified
``Err``; driver error text only ever lands in ``Err.detail``.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError

from contact_api.core.config import Settings
from contact_api.core.result import Err, ErrorKind, Ok, Result
from contact_api.db.base import Base
from contact_api.db.session import build_engine, build_session_factory
from contact_api.models.contact import ContactSubmission, ContactSubmissionError

logger = logging.getLogger(__name__)

STORE_VALIDATION_MESSAGE = "Validation error. Please check your input."
STORE_UNAVAILABLE_MESSAGE = "Something went wrong. Please try again later."


@dataclass(frozen=True)
class Submission:
    """A validated submission plus the request metadata captured with it."""

    name: str
    email: str
    subject: str
    message: str
    source_ip: Optional[str] = None
    client_agent: Optional[str] = None


class RecordStore(ABC):
    """Persistence contract used by the contact service."""

    def open(self) -> None:
        """Acquire shared resources. Called once from the app lifespan."""

    def close(self) -> None:
        """Release shared resources. Called once at shutdown."""

    @abstractmethod
    def insert(self, submission: Submission) -> Result[str]:
        """Persist one submission and return its generated identifier."""


class SqlAlchemyRecordStore(RecordStore):
    def __init__(self, engine: Engine, create_schema: bool = True) -> None:
        self._engine = engine
        self._session_factory = build_session_factory(engine)
        self._create_schema = create_schema

    @classmethod
    def from_settings(cls, settings: Settings) -> "SqlAlchemyRecordStore":
        return cls(build_engine(settings), create_schema=settings.STORE_CREATE_SCHEMA)

    @property
    def engine(self) -> Engine:
        return self._engine

    def open(self) -> None:
        if not self._create_schema:
            return
        try:
            Base.metadata.create_all(self._engine)
            logger.info("Record store schema ready")
        except SQLAlchemyError as exc:
            # The service keeps running; inserts will report connectivity errors.
            logger.error("Record store unavailable at startup: %s", exc)

    def close(self) -> None:
        self._engine.dispose()
        logger.info("Record store connections disposed")

    def insert(self, submission: Submission) -> Result[str]:
        session = self._session_factory()
        try:
            record = ContactSubmission(
                name=submission.name,
                email=submission.email,
                subject=submission.subject,
                message=submission.message,
                source_ip=submission.source_ip,
                client_agent=submission.client_agent,
            )
            session.add(record)
            session.flush()
            record_id = record.id
            session.commit()
            return Ok(record_id)
        except ContactSubmissionError as exc:
            session.rollback()
            return Err(ErrorKind.STORE_VALIDATION, STORE_VALIDATION_MESSAGE, detail=str(exc))
        except (IntegrityError, DataError) as exc:
            session.rollback()
            return Err(
                ErrorKind.STORE_VALIDATION,
                STORE_VALIDATION_MESSAGE,
                detail=f"{type(exc).__name__}: {exc.orig}",
            )
        except SQLAlchemyError as exc:
            session.rollback()
            return Err(
                ErrorKind.STORE_CONNECTIVITY,
                STORE_UNAVAILABLE_MESSAGE,
                detail=f"{type(exc).__name__}: {exc}",
            )
        finally:
            session.close()
