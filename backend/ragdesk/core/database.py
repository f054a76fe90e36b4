"""
Database connections: SQLAlchemy engine and session factory for the user store.

The pool is bounded: at most DB_POOL_SIZE connections, no overflow, and a
caller waiting longer than DB_POOL_TIMEOUT gets sqlalchemy.exc.TimeoutError.
"""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session
from sqlalchemy.pool import QueuePool

from ragdesk.config import get_settings


class Base(DeclarativeBase):
    """Declarative base for ORM models."""


def create_db_engine(
    database_url: str,
    pool_size: int = 10,
    pool_timeout: float = 30.0,
) -> Engine:
    """Create an engine with a fixed-size, blocking connection pool."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


@lru_cache
def get_engine() -> Engine:
    """Get the shared engine (singleton)."""
    settings = get_settings()
    return create_db_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        pool_timeout=settings.DB_POOL_TIMEOUT,
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create missing tables. Existing tables are left untouched."""
    # Models must be imported so they register on Base.metadata.
    from ragdesk.features.auth import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
