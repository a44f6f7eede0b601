"""Task decomposition - requirements into validated, ordered todo lists.

- Data model (tasks, todo lists, decomposition output)
- Decomposition services (requirement -> subtasks)
- Dependency resolution (cycle checks, readiness, critical path)
"""

from taskloop.decomposition.decomposer import Decomposer, OutlineDecomposer
from taskloop.decomposition.dependency_resolver import DependencyResolver
from taskloop.decomposition.models import (
    Decomposition,
    SubtaskSpec,
    Task,
    TaskStatus,
    TodoList,
)

__all__ = [
    "Decomposer",
    "Decomposition",
    "DependencyResolver",
    "OutlineDecomposer",
    "SubtaskSpec",
    "Task",
    "TaskStatus",
    "TodoList",
]
