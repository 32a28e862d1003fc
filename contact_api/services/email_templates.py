from __future__ import annotations

import html
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from contact_api.services.validator import ValidatedContact

SUBJECT_PREFIX = "New Contact Form Message: "

_LINE_BREAKS = re.compile(r"[\r\n]+")

_HTML_TEMPLATE = """\
<div style="font-family: Arial; padding: 20px; background: #f9f9f9;">
  <div style="background: #fff; padding: 30px; border-radius: 10px;">
    <h2>New Contact Message</h2>
    <p><strong>Name:</strong> {name}</p>
    <p><strong>Email:</strong> {email}</p>
    <p><strong>Subject:</strong> {subject}</p>
    <p><strong>Message:</strong></p>
    <div style="background: #f0f0f0; padding: 10px; border-radius: 5px;">{message}</div>
    <hr>
    <p style="font-size: 12px; color: #666;">Sent on {sent_on}</p>
  </div>
</div>
"""


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def build_subject(subject: str) -> str:
    # Header values cannot carry line breaks.
    return SUBJECT_PREFIX + _LINE_BREAKS.sub(" ", subject)


def _escape_multiline(value: str) -> str:
    escaped = html.escape(value, quote=True)
    return escaped.replace("\r\n", "\n").replace("\n", "<br>")


def render_html(contact: ValidatedContact, sent_at: Optional[datetime] = None) -> str:
    """HTML body with every submitted field escaped before interpolation."""
    sent_at = sent_at or datetime.now(timezone.utc)
    return _HTML_TEMPLATE.format(
        name=html.escape(contact.name, quote=True),
        email=html.escape(contact.email, quote=True),
        subject=html.escape(contact.subject, quote=True),
        message=_escape_multiline(contact.message),
        sent_on=sent_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip(),
    )


def render_text(contact: ValidatedContact) -> str:
    return (
        f"Name: {contact.name}\n"
        f"Email: {contact.email}\n"
        f"Subject: {contact.subject}\n"
        f"Message: {contact.message}"
    )


def render_contact_email(
    contact: ValidatedContact, sent_at: Optional[datetime] = None
) -> RenderedEmail:
    return RenderedEmail(
        subject=build_subject(contact.subject),
        html=render_html(contact, sent_at=sent_at),
        text=render_text(contact),
    )
