from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from contact_api.core.config import Settings


def build_engine(settings: Settings) -> Engine:
    """
    Create the shared engine for the record store.

    SQLite gets ``check_same_thread=False`` because inserts run on worker
    threads; in-memory SQLite also needs a single shared connection.
    """
    url = settings.DATABASE_URL
    if url.startswith("sqlite"):
        options = {
            "connect_args": {"check_same_thread": False},
            "echo": settings.DEBUG,
        }
        if url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return create_engine(url, **options)

    return create_engine(
        url,
        pool_pre_ping=settings.DB_POOL_PRE_PING,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        echo=settings.DEBUG,  # Log SQL queries in debug mode
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
