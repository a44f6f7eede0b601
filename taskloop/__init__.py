"""
taskloop - sequential task-list orchestration.

Decomposes a requirement into a dependency-checked todo list and walks it
task by task, routing each task to an execution strategy and retrying or
escalating failures to a human operator.
"""

__version__ = "0.1.0"

from taskloop.core.orchestrator import ExecutionReport, PlanSession, TodoListManager

__all__ = ["ExecutionReport", "PlanSession", "TodoListManager", "__version__"]
