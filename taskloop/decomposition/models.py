"""Pydantic models for the task list.

This module defines the task lifecycle, the cursor-tracked todo list that
drives execution order, and the structures returned by a decomposition
service.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskloop.core.exceptions import TaskStateError

# =============================================================================
# ENUMS
# =============================================================================


class TaskStatus(str, Enum):
    """Lifecycle status of a task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"

    @property
    def is_resolved(self) -> bool:
        """Whether the status is terminal."""
        return self in (TaskStatus.COMPLETED, TaskStatus.SKIPPED)


_ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.SKIPPED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.COMPLETED, TaskStatus.SKIPPED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.SKIPPED: frozenset(),
}


# =============================================================================
# TASK
# =============================================================================


class Task(BaseModel):
    """A single unit of work in a todo list.

    Status moves forward only: PENDING -> IN_PROGRESS -> COMPLETED or
    SKIPPED. A task that can never run may go straight from PENDING to
    SKIPPED.

    Example:
        >>> task = Task(id=2, description="Implement parser", dependencies=[1])
        >>> task.start()
        >>> task.complete("parser.py written")
        >>> task.status
        <TaskStatus.COMPLETED: 'completed'>
    """

    model_config = ConfigDict(frozen=False)

    id: int = Field(
        ...,
        gt=0,
        description="Position-derived identity, unique within a list",
    )
    description: str = Field(
        ...,
        description="Free-text task description",
    )
    status: TaskStatus = Field(
        default=TaskStatus.PENDING,
        description="Lifecycle status",
    )
    output: str | None = Field(
        default=None,
        description="Result text, set only on completion",
    )
    dependencies: list[int] = Field(
        default_factory=list,
        description="Task IDs that must be completed before this task runs",
    )
    failure_count: int = Field(
        default=0,
        ge=0,
        description="Consecutive failures, reset on success",
    )
    last_error: str | None = Field(
        default=None,
        description="Most recent failure message",
    )
    skip_reason: str | None = Field(
        default=None,
        description="Why the task was skipped",
    )
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None

    @field_validator("dependencies")
    @classmethod
    def dedupe_dependencies(cls, v: list[int]) -> list[int]:
        """Treat dependencies as a set while keeping declaration order."""
        return list(dict.fromkeys(v))

    @property
    def has_dependencies(self) -> bool:
        """Check if the task declares any dependency."""
        return bool(self.dependencies)

    def is_pending(self) -> bool:
        return self.status == TaskStatus.PENDING

    def is_in_progress(self) -> bool:
        return self.status == TaskStatus.IN_PROGRESS

    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def is_skipped(self) -> bool:
        return self.status == TaskStatus.SKIPPED

    def _transition(self, target: TaskStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise TaskStateError(
                f"Task {self.id} cannot move from {self.status.value} to {target.value}"
            )
        self.status = target

    def start(self) -> None:
        """Mark the task as in progress."""
        self._transition(TaskStatus.IN_PROGRESS)

    def complete(self, output: str) -> None:
        """Mark the task completed with its output."""
        self._transition(TaskStatus.COMPLETED)
        self.output = output
        self.failure_count = 0
        self.last_error = None
        self.completed_at = datetime.now()

    def skip(self, reason: str) -> None:
        """Mark the task skipped."""
        self._transition(TaskStatus.SKIPPED)
        self.skip_reason = reason

    def record_failure(self, message: str) -> int:
        """Record a failed attempt and return the new failure count."""
        self.failure_count += 1
        self.last_error = message
        return self.failure_count

    def __str__(self) -> str:
        symbol = {
            TaskStatus.PENDING: "[ ]",
            TaskStatus.IN_PROGRESS: "[>]",
            TaskStatus.COMPLETED: "[x]",
            TaskStatus.SKIPPED: "[-]",
        }[self.status]
        return f"{symbol} Task {self.id}: {self.description}"


# =============================================================================
# TODO LIST
# =============================================================================


class TodoList(BaseModel):
    """Ordered, cursor-tracked list of tasks derived from one requirement.

    The cursor only moves forward. It equals the task count exactly when
    every task has been completed or skipped.
    """

    model_config = ConfigDict(frozen=False)

    requirement: str = Field(..., description="Originating requirement")
    tasks: list[Task] = Field(default_factory=list)
    current_index: int = Field(default=0, ge=0, description="Cursor into tasks")
    analysis_result: str | None = Field(
        default=None,
        description="Decomposition rationale attached after creation",
    )

    @classmethod
    def from_specs(
        cls,
        requirement: str,
        specs: list["SubtaskSpec"],
        analysis_result: str | None = None,
    ) -> "TodoList":
        """Create a todo list, assigning IDs 1..n in list order."""
        tasks = [
            Task(id=i, description=spec.description, dependencies=spec.depends_on)
            for i, spec in enumerate(specs, start=1)
        ]
        return cls(requirement=requirement, tasks=tasks, analysis_result=analysis_result)

    def get_current_task(self) -> Task | None:
        """Get the task at the cursor, or None when all are resolved."""
        if self.current_index < len(self.tasks):
            return self.tasks[self.current_index]
        return None

    def get_task(self, task_id: int) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def start_current_task(self) -> bool:
        """Mark the current task in progress if it is still pending."""
        task = self.get_current_task()
        if task is None:
            return False
        if task.is_pending():
            task.start()
        return True

    def complete_current_task(self, output: str) -> Task:
        """Complete the current task and advance the cursor."""
        task = self._require_current()
        task.complete(output)
        self.current_index += 1
        return task

    def skip_current_task(self, reason: str) -> Task:
        """Skip the current task and advance the cursor."""
        task = self._require_current()
        task.skip(reason)
        self.current_index += 1
        return task

    def _require_current(self) -> Task:
        task = self.get_current_task()
        if task is None:
            raise TaskStateError("No current task: all tasks are resolved")
        return task

    def is_completed(self) -> bool:
        """Check if every task is resolved."""
        return self.current_index >= len(self.tasks)

    def get_completed_tasks(self) -> list[Task]:
        return [t for t in self.tasks if t.is_completed()]

    def get_pending_tasks(self) -> list[Task]:
        return [t for t in self.tasks if t.is_pending()]

    def get_skipped_tasks(self) -> list[Task]:
        return [t for t in self.tasks if t.is_skipped()]

    @property
    def total_task_count(self) -> int:
        return len(self.tasks)

    @property
    def completed_task_count(self) -> int:
        return len(self.get_completed_tasks())

    @property
    def progress_percentage(self) -> int:
        """Percentage of tasks completed (100 for an empty list)."""
        if not self.tasks:
            return 100
        return self.completed_task_count * 100 // len(self.tasks)


# =============================================================================
# DECOMPOSITION OUTPUT
# =============================================================================


class SubtaskSpec(BaseModel):
    """One subtask produced by a decomposition service."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(..., min_length=1)
    depends_on: list[int] = Field(
        default_factory=list,
        description="1-based positions of prerequisite subtasks",
    )


class Decomposition(BaseModel):
    """Ordered subtasks plus optional rationale text."""

    model_config = ConfigDict(frozen=True)

    subtasks: list[SubtaskSpec] = Field(default_factory=list)
    rationale: str | None = None

    @classmethod
    def from_descriptions(
        cls,
        descriptions: list[str],
        rationale: str | None = None,
    ) -> "Decomposition":
        """Build a decomposition from plain description strings."""
        return cls(
            subtasks=[SubtaskSpec(description=d) for d in descriptions],
            rationale=rationale,
        )

    @property
    def is_empty(self) -> bool:
        return not self.subtasks
