"""Database connection and session management."""

import logging
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from estatebill.config import get_settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the given URL.

    In-memory SQLite uses StaticPool so every session sees the same database;
    file SQLite allows use from scheduler worker threads.
    """
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            return create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory whose objects stay readable after commit."""
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_engine() -> Engine:
    """Get or create the engine configured by DATABASE_URL."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_db_engine(settings.database_url, echo=settings.database_echo)
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create the application session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet."""
    from estatebill.models import Base

    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    logger.info("Database tables ensured on %s", engine.url.render_as_string(hide_password=True))


def dispose_engine() -> None:
    """Dispose the cached engine (used by tests and on shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


__all__ = [
    "create_db_engine",
    "create_session_factory",
    "dispose_engine",
    "get_db",
    "get_engine",
    "get_session_factory",
    "init_db",
]
