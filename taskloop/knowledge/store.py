"""Key/value blob stores behind the context cache."""

from typing import Protocol, runtime_checkable

from loguru import logger
from sqlalchemy import Engine

from taskloop.core.config import Settings
from taskloop.knowledge.database import (
    create_session_maker,
    create_store_engine,
    init_db,
    session_scope,
)
from taskloop.knowledge.models import ContextEntry


@runtime_checkable
class ContextStore(Protocol):
    """Opaque text blobs addressed by string keys."""

    def put(self, key: str, value: str) -> None: ...

    def get(self, key: str) -> str | None: ...


class MemoryContextStore:
    """Process-local store; contents are lost on exit."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def put(self, key: str, value: str) -> None:
        self._entries[key] = value

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)


class SqlContextStore:
    """
    Store backed by a SQL table, for recovery across process restarts.

    Example:
        >>> store = SqlContextStore.from_url("sqlite:///.taskloop/context.db")
        >>> store.put("task-ctx:requirement:abc", "Harden module X")
        >>> store.get("task-ctx:requirement:abc")
        'Harden module X'
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_maker = create_session_maker(engine)
        init_db(engine)

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> "SqlContextStore":
        return cls(create_store_engine(url, echo=echo))

    def put(self, key: str, value: str) -> None:
        with session_scope(self._session_maker) as session:
            session.merge(ContextEntry(key=key, value=value))

    def get(self, key: str) -> str | None:
        with session_scope(self._session_maker) as session:
            entry = session.get(ContextEntry, key)
            return entry.value if entry is not None else None

    def close(self) -> None:
        """Dispose of pooled connections."""
        self.engine.dispose()


def open_store(settings: Settings) -> ContextStore:
    """Create the store selected by settings."""
    if settings.taskloop_cache_backend == "memory":
        return MemoryContextStore()

    logger.debug(f"Using SQL context store at {settings.taskloop_cache_url}")
    return SqlContextStore.from_url(settings.taskloop_cache_url, echo=settings.taskloop_debug)
