"""Core module - configuration, logging, exceptions and the orchestrator."""

from taskloop.core.config import Settings, clear_settings_cache, get_settings
from taskloop.core.exceptions import (
    CyclicDependencyError,
    DecompositionError,
    ExecutionError,
    PlanNotActiveError,
    SessionNotFoundError,
    TaskLoopError,
    TaskStateError,
)
from taskloop.core.logging import configure_logging

__all__ = [
    "CyclicDependencyError",
    "DecompositionError",
    "ExecutionError",
    "PlanNotActiveError",
    "SessionNotFoundError",
    "Settings",
    "TaskLoopError",
    "TaskStateError",
    "clear_settings_cache",
    "configure_logging",
    "get_settings",
]
