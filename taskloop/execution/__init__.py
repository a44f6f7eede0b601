"""Task execution - routing, backends, retries and failure escalation."""

from taskloop.execution.backends import ExecutionBackend, PlaceholderBackend, dispatch
from taskloop.execution.error_classifier import (
    ErrorClassification,
    ErrorType,
    classify_error,
    classify_failure,
    get_max_retries,
)
from taskloop.execution.interactive import (
    ConsolePrompt,
    FailureDecision,
    InteractiveFailureHandler,
    OperatorPrompt,
)
from taskloop.execution.retry_policy import TaskRetryPolicy
from taskloop.execution.router import (
    ExecutionType,
    RouteDecision,
    RouteRule,
    TaskRouter,
    route,
)

__all__ = [
    "ConsolePrompt",
    "ErrorClassification",
    "ErrorType",
    "ExecutionBackend",
    "ExecutionType",
    "FailureDecision",
    "InteractiveFailureHandler",
    "OperatorPrompt",
    "PlaceholderBackend",
    "RouteDecision",
    "RouteRule",
    "TaskRetryPolicy",
    "TaskRouter",
    "classify_error",
    "classify_failure",
    "dispatch",
    "get_max_retries",
    "route",
]
