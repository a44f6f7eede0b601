"""Context persistence - session-scoped cache of plan context."""

from taskloop.knowledge.context_cache import (
    ExecutionContextRecord,
    TaskContextCache,
    TaskResultRecord,
)
from taskloop.knowledge.execution_context import ExecutionContext
from taskloop.knowledge.store import (
    ContextStore,
    MemoryContextStore,
    SqlContextStore,
    open_store,
)

__all__ = [
    "ContextStore",
    "ExecutionContext",
    "ExecutionContextRecord",
    "MemoryContextStore",
    "SqlContextStore",
    "TaskContextCache",
    "TaskResultRecord",
    "open_store",
]
