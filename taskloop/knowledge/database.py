"""SQLAlchemy engine and session management for the context cache."""

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from taskloop.knowledge.models import Base

SQLITE_FILE_PREFIX = "sqlite:///"


def create_store_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine, making the parent directory of SQLite files.

    Args:
        url: SQLAlchemy database URL.
        echo: Log emitted SQL.

    Returns:
        Engine instance.
    """
    if url.startswith(SQLITE_FILE_PREFIX) and ":memory:" not in url:
        Path(url[len(SQLITE_FILE_PREFIX):]).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, echo=echo, pool_pre_ping=True)
    logger.debug(f"Database engine created for {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_maker(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the engine."""
    return sessionmaker(engine, expire_on_commit=False, autoflush=False)


@contextmanager
def session_scope(session_maker: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Provide a transactional session.

    Commits on success and rolls back on error.

    Example:
        >>> with session_scope(maker) as session:
        ...     session.merge(entry)
    """
    with session_maker() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


def init_db(engine: Engine) -> None:
    """Create all tables that don't exist yet."""
    logger.debug("Initializing context cache schema")
    Base.metadata.create_all(engine)
