"""
Result values returned by the contact pipeline collaborators.

The validator, the record store and the notifier never raise for expected
failures. They return ``Ok(value)`` or ``Err(kind, message, detail)`` and
the contact service decides the HTTP outcome from ``kind``.

Usage:
    result = store.insert(submission)
    if isinstance(result, Err):
        logger.warning("store failed kind=%s", result.kind.value)
    else:
        record_id = result.value
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure taxonomy shared by every layer of the service."""

    MISSING_FIELD = "missing_field"
    INVALID_EMAIL = "invalid_email"
    FIELD_TOO_LONG = "field_too_long"
    STORE_VALIDATION = "store_validation"
    STORE_CONNECTIVITY = "store_connectivity"
    MAIL_AUTH = "mail_auth"
    MAIL_NOT_CONFIGURED = "mail_not_configured"
    MAIL_OTHER = "mail_other"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    INTERNAL = "internal"

    @property
    def is_client_error(self) -> bool:
        return self in _CLIENT_ERRORS


_CLIENT_ERRORS = frozenset(
    {
        ErrorKind.MISSING_FIELD,
        ErrorKind.INVALID_EMAIL,
        ErrorKind.FIELD_TOO_LONG,
        ErrorKind.STORE_VALIDATION,
    }
)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """A classified failure.

    ``message`` is safe to show to the client; ``detail`` is for
    server-side logs only and may contain driver or relay error text.
    """

    kind: ErrorKind
    message: str = ""
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
