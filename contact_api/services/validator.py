from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping

from contact_api.core.result import Err, ErrorKind, Ok, Result

# Loose on purpose: word characters with dot/hyphen segments and a 2-3
# character final label, not an RFC 5322 grammar. Equivalent to
# ^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$ minus the nested optional
# quantifier, which backtracks exponentially.
EMAIL_PATTERN = re.compile(r"^\w+([.-]\w+)*@\w+([.-]\w+)*(\.\w{2,3})+$", re.ASCII)

FIELD_LIMITS = {
    "name": 100,
    "subject": 200,
    "message": 1000,
}
EMAIL_MAX_LENGTH = 254

REQUIRED_FIELDS = ("name", "email", "subject", "message")

MISSING_FIELD_MESSAGE = "All fields are required"
INVALID_EMAIL_MESSAGE = "Please enter a valid email address"


@dataclass(frozen=True)
class ValidatedContact:
    """Normalized contact fields that passed validation."""

    name: str
    email: str
    subject: str
    message: str


def _as_text(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def extract_fields(raw_body: Any) -> dict:
    """Pull the four form fields out of a parsed body.

    Missing keys and non-string values come back as empty strings.
    """
    if not isinstance(raw_body, Mapping):
        raw_body = {}
    return {field: raw_body.get(field) for field in REQUIRED_FIELDS}


def validate_submission(
    name: Any, email: Any, subject: Any, message: Any
) -> Result[ValidatedContact]:
    fields = {
        "name": _as_text(name),
        "email": _as_text(email).lower(),
        "subject": _as_text(subject),
        "message": _as_text(message),
    }

    missing = [field for field in REQUIRED_FIELDS if not fields[field]]
    if missing:
        return Err(
            ErrorKind.MISSING_FIELD,
            MISSING_FIELD_MESSAGE,
            detail="missing=" + ",".join(missing),
        )

    if len(fields["email"]) > EMAIL_MAX_LENGTH or not EMAIL_PATTERN.match(fields["email"]):
        return Err(ErrorKind.INVALID_EMAIL, INVALID_EMAIL_MESSAGE)

    for field, limit in FIELD_LIMITS.items():
        if len(fields[field]) > limit:
            return Err(
                ErrorKind.FIELD_TOO_LONG,
                f"{field.capitalize()} must be at most {limit} characters",
                detail=f"field={field} length={len(fields[field])}",
            )

    return Ok(ValidatedContact(**fields))
