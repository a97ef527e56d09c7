"""Database configuration and session management.

The audit database handle is built explicitly at startup and passed to the
services that need it; nothing here opens a connection at import time.
"""

from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .core.config import Settings

# Create base class for models
Base = declarative_base()


def is_postgresql(database_url: str) -> bool:
    """Check if the configured database is PostgreSQL."""
    return database_url.startswith("postgresql")


def create_db_engine(database_url: str, settings: Optional[Settings] = None) -> Engine:
    """Create an engine with database-specific tuning."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # In-memory databases live on a single connection.
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)

        # SQLite defaults foreign_keys to OFF; enable it on every connection.
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    settings = settings or Settings()
    return create_engine(
        database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,
    )


def create_session_factory(database_url: str, settings: Optional[Settings] = None, create_tables: bool = True) -> sessionmaker:
    """Build a session factory bound to ``database_url``.

    With ``create_tables`` the audit tables are created if they are missing.
    """
    engine = create_db_engine(database_url, settings)
    if create_tables:
        # Import models so they register on Base.metadata.
        from . import models  # noqa: F401
        Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
