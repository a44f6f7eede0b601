"""Exception hierarchy for taskloop."""


class TaskLoopError(Exception):
    """Base exception for taskloop errors."""

    pass


class DecompositionError(TaskLoopError):
    """Failed to decompose a requirement into subtasks."""

    pass


class CyclicDependencyError(TaskLoopError):
    """The task dependency graph contains a cycle."""

    def __init__(self, cycle: list[int]) -> None:
        self.cycle = cycle
        path = " -> ".join(str(task_id) for task_id in cycle)
        super().__init__(f"Circular dependency detected: {path}")


class TaskStateError(TaskLoopError):
    """Illegal task status transition."""

    pass


class PlanNotActiveError(TaskLoopError):
    """The plan session has already completed or been aborted."""

    pass


class SessionNotFoundError(TaskLoopError):
    """No cached context exists for the requested session."""

    pass


class ExecutionError(TaskLoopError):
    """An execution backend failed to run a task."""

    pass
