from __future__ import annotations

import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Optional

from contact_api.core.config import Settings
from contact_api.core.result import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)

MAIL_AUTH_MESSAGE = "Email authentication failed. Please try again later."
MAIL_UNAVAILABLE_MESSAGE = "Email service is currently unavailable. Please try again later."
MAIL_FAILED_MESSAGE = "Something went wrong. Please try again later."


@dataclass(frozen=True)
class OutgoingEmail:
    sender: str
    recipient: str
    subject: str
    html: str
    text: str
    reply_to: Optional[str] = None


class Notifier(ABC):
    """Delivery contract used by the contact service."""

    @abstractmethod
    def send(self, email: OutgoingEmail) -> Result[None]:
        """Hand one message to the relay."""


def build_message(email: OutgoingEmail) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = email.sender
    msg["To"] = email.recipient
    if email.reply_to:
        msg["Reply-To"] = email.reply_to
    msg["Subject"] = email.subject
    msg["Date"] = formatdate(localtime=False, usegmt=True)
    msg["Message-ID"] = make_msgid()
    msg.set_content(email.text)
    msg.add_alternative(email.html, subtype="html")
    return msg


class SmtpNotifier(Notifier):
    """Synchronous SMTP relay client. Callers run ``send`` off the event loop."""

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        use_tls: bool = True,
        timeout: float = 15.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpNotifier":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.MAIL_USER,
            password=settings.MAIL_PASS.get_secret_value() if settings.MAIL_PASS else None,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.username and self._password)

    def send(self, email: OutgoingEmail) -> Result[None]:
        if not self.configured:
            return Err(
                ErrorKind.MAIL_NOT_CONFIGURED,
                MAIL_UNAVAILABLE_MESSAGE,
                detail="SMTP credentials are not configured",
            )

        try:
            message = build_message(email)
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                server.login(self.username, self._password)
                server.send_message(message)
        except smtplib.SMTPAuthenticationError as exc:
            return Err(
                ErrorKind.MAIL_AUTH,
                MAIL_AUTH_MESSAGE,
                detail=f"SMTP auth rejected with code {exc.smtp_code}",
            )
        except (smtplib.SMTPException, OSError, ValueError) as exc:
            return Err(
                ErrorKind.MAIL_OTHER,
                MAIL_FAILED_MESSAGE,
                detail=f"{type(exc).__name__}: {exc}",
            )

        logger.info("Notification relayed via %s:%s", self.host, self.port)
        return Ok(None)
