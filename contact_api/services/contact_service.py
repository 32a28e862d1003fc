from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from email.utils import formataddr
from typing import Any, Dict, Optional

from contact_api.core.config import Settings
from contact_api.core.result import Err, ErrorKind, Result
from contact_api.services.email_templates import render_contact_email
from contact_api.services.notifier import (
    MAIL_FAILED_MESSAGE,
    MAIL_UNAVAILABLE_MESSAGE,
    Notifier,
    OutgoingEmail,
)
from contact_api.services.record_store import (
    STORE_UNAVAILABLE_MESSAGE,
    RecordStore,
    Submission,
)
from contact_api.services.validator import (
    ValidatedContact,
    extract_fields,
    validate_submission,
)

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Thank you! Your message has been sent successfully."


@dataclass(frozen=True)
class RequestMetadata:
    source_ip: Optional[str] = None
    client_agent: Optional[str] = None
    request_id: Optional[str] = None


@dataclass(frozen=True)
class ContactOutcome:
    """HTTP status plus the JSON envelope for one contact request."""

    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)
    kind: Optional[ErrorKind] = None
    record_id: Optional[str] = None


def _failure(error: Err, record_id: Optional[str] = None) -> ContactOutcome:
    status_code = 400 if error.kind.is_client_error else 500
    return ContactOutcome(
        status_code=status_code,
        body={"success": False, "message": error.message},
        kind=error.kind,
        record_id=record_id,
    )


class ContactService:
    """Validates, persists and relays one contact-form submission."""

    def __init__(self, store: RecordStore, notifier: Notifier, settings: Settings) -> None:
        self._store = store
        self._notifier = notifier
        self._settings = settings

    async def handle(self, raw_body: Any, metadata: RequestMetadata) -> ContactOutcome:
        validated = validate_submission(**extract_fields(raw_body))
        if isinstance(validated, Err):
            logger.info(
                "Contact rejected kind=%s detail=%s",
                validated.kind.value,
                validated.detail,
                extra={"event_type": "contact_rejected", "request_id": metadata.request_id},
            )
            return _failure(validated)

        contact = validated.value
        email_domain = contact.email.split("@")[-1]
        submission = Submission(
            name=contact.name,
            email=contact.email,
            subject=contact.subject,
            message=contact.message,
            source_ip=metadata.source_ip,
            client_agent=metadata.client_agent,
        )

        stored = await self._persist(submission)
        if isinstance(stored, Err):
            logger.error(
                "Contact persistence failed kind=%s detail=%s",
                stored.kind.value,
                stored.detail,
                extra={
                    "event_type": "contact_store_failed",
                    "request_id": metadata.request_id,
                    "email_domain": email_domain,
                },
            )
            return _failure(stored)

        record_id = stored.value
        logger.info(
            "Contact saved id=%s",
            record_id,
            extra={
                "event_type": "contact_saved",
                "request_id": metadata.request_id,
                "email_domain": email_domain,
            },
        )

        sent = await self._notify(contact)
        if isinstance(sent, Err):
            logger.error(
                "Contact notification failed id=%s kind=%s detail=%s",
                record_id,
                sent.kind.value,
                sent.detail,
                extra={
                    "event_type": "contact_notify_failed",
                    "request_id": metadata.request_id,
                    "record_id": record_id,
                },
            )
            return _failure(sent, record_id=record_id)

        logger.info(
            "Contact notification sent id=%s to=%s",
            record_id,
            self._settings.MAIL_RECEIVER,
            extra={
                "event_type": "contact_notified",
                "request_id": metadata.request_id,
                "record_id": record_id,
            },
        )
        return ContactOutcome(
            status_code=200,
            body={"success": True, "message": SUCCESS_MESSAGE},
            record_id=record_id,
        )

    async def _persist(self, submission: Submission) -> Result[str]:
        timeout = self._settings.STORE_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._store.insert, submission), timeout=timeout
            )
        except asyncio.TimeoutError:
            return Err(
                ErrorKind.STORE_CONNECTIVITY,
                STORE_UNAVAILABLE_MESSAGE,
                detail=f"insert timed out after {timeout}s",
            )

    async def _notify(self, contact: ValidatedContact) -> Result[None]:
        settings = self._settings
        if not settings.MAIL_USER or not settings.MAIL_RECEIVER:
            return Err(
                ErrorKind.MAIL_NOT_CONFIGURED,
                MAIL_UNAVAILABLE_MESSAGE,
                detail="MAIL_USER or MAIL_RECEIVER missing",
            )

        rendered = render_contact_email(contact)
        email = OutgoingEmail(
            sender=formataddr((settings.MAIL_SENDER_NAME, settings.MAIL_USER)),
            recipient=settings.MAIL_RECEIVER,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            reply_to=contact.email,
        )

        timeout = settings.SMTP_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._notifier.send, email), timeout=timeout
            )
        except asyncio.TimeoutError:
            return Err(
                ErrorKind.MAIL_OTHER,
                MAIL_FAILED_MESSAGE,
                detail=f"send timed out after {timeout}s",
            )
