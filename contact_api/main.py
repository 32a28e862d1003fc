import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from contact_api.api.routes import contact, health
from contact_api.core.config import Settings, settings as default_settings
from contact_api.core.errors import register_exception_handlers
from contact_api.core.logging import setup_logging
from contact_api.core.middleware import (
    BodySizeLimitMiddleware,
    RequestIdMiddleware,
    UnhandledErrorMiddleware,
)
from contact_api.core.rate_limiter import ContactRateLimiter
from contact_api.core.security_headers import SecurityHeadersMiddleware
from contact_api.services.contact_service import ContactService
from contact_api.services.notifier import Notifier, SmtpNotifier
from contact_api.services.record_store import RecordStore, SqlAlchemyRecordStore

logger = logging.getLogger(__name__)

API_PREFIX = "/api"

tags_metadata = [
    {
        "name": "contact",
        "description": "**Contact** - Public contact form. Stores the submission and emails a notification.",
    },
    {
        "name": "health",
        "description": "**Health** - Liveness probe with uptime.",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    settings: Settings = app.state.settings

    # Startup
    logger.info("Starting %s v%s", settings.PROJECT_NAME, settings.VERSION)
    logger.info("Environment: %s", settings.ENVIRONMENT)
    if settings.mail_configured:
        logger.info("Emails will be sent to: %s", settings.MAIL_RECEIVER)
    else:
        logger.warning(
            "MAIL_USER, MAIL_PASS or MAIL_RECEIVER missing; contact notifications will fail"
        )
    app.state.store.open()

    yield

    # Shutdown
    logger.info("Shutting down...")
    app.state.store.close()


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[RecordStore] = None,
    notifier: Optional[Notifier] = None,
    rate_limiter: Optional[ContactRateLimiter] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the API with its shared collaborators.

    Anything not passed in is built from ``settings``: the SQLAlchemy record
    store, the SMTP notifier and the rate limiter. Tests pass fakes here.
    """
    settings = settings or default_settings
    if configure_logging:
        setup_logging(settings)

    docs_enabled = settings.DEBUG
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Contact form relay: validate, store, notify.",
        openapi_tags=tags_metadata,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url=f"{API_PREFIX}/openapi.json" if docs_enabled else None,
    )

    app.state.settings = settings
    app.state.started_at = time.monotonic()
    app.state.store = store or SqlAlchemyRecordStore.from_settings(settings)
    app.state.notifier = notifier or SmtpNotifier.from_settings(settings)
    app.state.rate_limiter = rate_limiter or ContactRateLimiter.from_settings(settings)
    app.state.contact_service = ContactService(
        store=app.state.store,
        notifier=app.state.notifier,
        settings=settings,
    )

    # Unhandled exceptions become a 500 inside the chain (innermost)
    app.add_middleware(UnhandledErrorMiddleware)

    # Body size guard, so its 413 still gets CORS headers
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.MAX_BODY_BYTES)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=settings.ALLOWED_METHODS,
        allow_headers=settings.ALLOWED_HEADERS,
    )

    # Request ID Tracing
    app.add_middleware(RequestIdMiddleware)

    # Security headers on every response (outermost)
    app.add_middleware(SecurityHeadersMiddleware)

    # Register global exception handlers
    register_exception_handlers(app)

    app.include_router(contact.router, prefix=API_PREFIX, tags=["contact"])
    app.include_router(health.router, prefix=API_PREFIX, tags=["health"])

    return app


app = create_app()
