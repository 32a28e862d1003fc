import os

# Minimal environment before the package reads its settings
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("MAIL_USER", "relay@example.com")
os.environ.setdefault("MAIL_PASS", "app-password")
os.environ.setdefault("MAIL_RECEIVER", "owner@example.com")
os.environ.setdefault("ALLOWED_ORIGINS", '["https://portfolio.example.com"]')

import uuid
from typing import List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from contact_api.core.config import Settings
from contact_api.core.rate_limiter import ContactRateLimiter, _InMemoryBackend
from contact_api.core.result import Err, Ok, Result
from contact_api.main import create_app
from contact_api.services.notifier import Notifier, OutgoingEmail
from contact_api.services.record_store import RecordStore, Submission

ALLOWED_ORIGIN = "https://portfolio.example.com"

VALID_PAYLOAD = {
    "name": "Jane Doe",
    "email": "jane@example.com",
    "subject": "Hello",
    "message": "Hi there",
}

# -----------------------------------------------------------------------------
# Fakes
# -----------------------------------------------------------------------------


class FakeRecordStore(RecordStore):
    def __init__(self, fail_with: Optional[Err] = None) -> None:
        self.fail_with = fail_with
        self.records: List[Tuple[str, Submission]] = []
        self.opened = False
        self.closed = False

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def insert(self, submission: Submission) -> Result[str]:
        if self.fail_with is not None:
            return self.fail_with
        record_id = uuid.uuid4().hex
        self.records.append((record_id, submission))
        return Ok(record_id)


class FakeNotifier(Notifier):
    def __init__(self, fail_with: Optional[Err] = None) -> None:
        self.fail_with = fail_with
        self.sent: List[OutgoingEmail] = []
        self.attempts = 0

    def send(self, email: OutgoingEmail) -> Result[None]:
        self.attempts += 1
        if self.fail_with is not None:
            return self.fail_with
        self.sent.append(email)
        return Ok(None)


# -----------------------------------------------------------------------------
# Settings & collaborators
# -----------------------------------------------------------------------------


def make_settings(**overrides) -> Settings:
    values = dict(
        ENVIRONMENT="testing",
        DATABASE_URL="sqlite://",
        LOG_FILE="",
        MAIL_USER="relay@example.com",
        MAIL_PASS="app-password",
        MAIL_RECEIVER="owner@example.com",
        ALLOWED_ORIGINS=[ALLOWED_ORIGIN],
        REDIS_URL=None,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def rate_limiter(test_settings) -> ContactRateLimiter:
    return ContactRateLimiter(
        backend=_InMemoryBackend(),
        limit=test_settings.CONTACT_RATE_LIMIT,
        window_seconds=test_settings.CONTACT_RATE_WINDOW_SECONDS,
        trusted_proxies=test_settings.TRUSTED_PROXIES,
    )


def build_test_app(settings: Settings, store, notifier, rate_limiter=None):
    return create_app(
        settings,
        store=store,
        notifier=notifier,
        rate_limiter=rate_limiter
        or ContactRateLimiter(
            backend=_InMemoryBackend(),
            limit=settings.CONTACT_RATE_LIMIT,
            window_seconds=settings.CONTACT_RATE_WINDOW_SECONDS,
            trusted_proxies=settings.TRUSTED_PROXIES,
        ),
        configure_logging=False,
    )


# -----------------------------------------------------------------------------
# Client Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def app(test_settings, store, notifier, rate_limiter):
    return build_test_app(test_settings, store, notifier, rate_limiter)


@pytest.fixture
def client(app):
    """
    TestClient over the app with fake store and notifier.
    Using 'with' triggers lifespan events (startup/shutdown).
    """
    with TestClient(app) as c:
        yield c
