"""
Task context cache - session-scoped persistence of plan context.

Caches the original requirement, the decomposition rationale, the task list
snapshot and per-task results under keys namespaced by session and
category, so a plan can be summarized for each step and recovered after a
restart. Values are JSON produced by pydantic; the store only sees text.
"""

from datetime import datetime
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from taskloop.decomposition.models import Task, TaskStatus
from taskloop.knowledge.store import ContextStore

PREFIX_REQUIREMENT = "task-ctx:requirement:"
PREFIX_ANALYSIS = "task-ctx:analysis:"
PREFIX_TASKS = "task-ctx:tasks:"
PREFIX_TASK_RESULT = "task-ctx:result:"
PREFIX_CONTEXT = "task-ctx:context:"

_TASK_LIST = TypeAdapter(list[Task])


# =============================================================================
# CACHED RECORDS
# =============================================================================


class TaskResultRecord(BaseModel):
    """Persisted outcome of one task."""

    model_config = ConfigDict(frozen=True)

    task_id: int
    description: str
    output: str | None = None
    success: bool
    timestamp: datetime = Field(default_factory=datetime.now)


class ExecutionContextRecord(BaseModel):
    """Persisted execution-context metadata."""

    model_config = ConfigDict(frozen=True)

    original_requirement: str
    analysis_result: str | None = None
    decisions: dict[str, str] = Field(default_factory=dict)
    constraints: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


# =============================================================================
# CACHE
# =============================================================================


class TaskContextCache:
    """
    Namespaced read/write access to one session's cached context.

    Example:
        >>> cache = TaskContextCache(MemoryContextStore())
        >>> cache.cache_requirement("Harden module X")
        >>> cache.get_cached_requirement()
        'Harden module X'
    """

    def __init__(
        self,
        store: ContextStore,
        session_id: str | None = None,
        preview_chars: int = 100,
    ) -> None:
        """
        Initialize the cache.

        Args:
            store: Backing key/value store.
            session_id: Existing session to attach to; a new one is
                generated when omitted.
            preview_chars: Truncation length for outputs in summaries.
        """
        self.store = store
        self.session_id = session_id or str(uuid4())
        self.preview_chars = preview_chars
        logger.debug(f"Task context cache attached to session {self.session_id}")

    def new_session(self) -> str:
        """Switch to a freshly generated session ID."""
        self.session_id = str(uuid4())
        logger.info(f"New task session created: {self.session_id}")
        return self.session_id

    # =========================================================================
    # REQUIREMENT / ANALYSIS
    # =========================================================================

    def cache_requirement(self, requirement: str) -> None:
        if not requirement:
            return
        self.store.put(PREFIX_REQUIREMENT + self.session_id, requirement)
        logger.debug(f"Cached requirement: {_truncate(requirement, self.preview_chars)}")

    def get_cached_requirement(self) -> str | None:
        return self.store.get(PREFIX_REQUIREMENT + self.session_id)

    def cache_analysis_result(self, analysis_result: str | None) -> None:
        if not analysis_result:
            return
        self.store.put(PREFIX_ANALYSIS + self.session_id, analysis_result)
        logger.debug(f"Cached analysis: {_truncate(analysis_result, self.preview_chars)}")

    def get_cached_analysis_result(self) -> str | None:
        return self.store.get(PREFIX_ANALYSIS + self.session_id)

    # =========================================================================
    # TASK LIST / RESULTS
    # =========================================================================

    def cache_task_list(self, tasks: list[Task]) -> None:
        """Snapshot the full task list, statuses included."""
        if not tasks:
            return
        payload = _TASK_LIST.dump_json(tasks).decode("utf-8")
        self.store.put(PREFIX_TASKS + self.session_id, payload)
        logger.debug(f"Cached task list: {len(tasks)} tasks (session: {self.session_id})")

    def get_cached_task_list(self) -> list[Task]:
        payload = self.store.get(PREFIX_TASKS + self.session_id)
        if payload is None:
            return []
        try:
            return _TASK_LIST.validate_json(payload)
        except ValidationError as e:
            logger.warning(f"Could not deserialize cached task list: {e}")
            return []

    def _result_key(self, task_id: int) -> str:
        return f"{PREFIX_TASK_RESULT}{self.session_id}:{task_id}"

    def cache_task_result(self, record: TaskResultRecord) -> None:
        self.store.put(self._result_key(record.task_id), record.model_dump_json())
        logger.debug(
            f"Cached result for task #{record.task_id} "
            f"(success={record.success}, session: {self.session_id})"
        )

    def get_cached_task_result(self, task_id: int) -> TaskResultRecord | None:
        payload = self.store.get(self._result_key(task_id))
        if payload is None:
            return None
        try:
            return TaskResultRecord.model_validate_json(payload)
        except ValidationError as e:
            logger.warning(f"Could not deserialize cached result #{task_id}: {e}")
            return None

    # =========================================================================
    # EXECUTION CONTEXT
    # =========================================================================

    def cache_execution_context(self, record: ExecutionContextRecord) -> None:
        self.store.put(PREFIX_CONTEXT + self.session_id, record.model_dump_json())
        logger.debug(f"Cached execution context (session: {self.session_id})")

    def get_cached_execution_context(self) -> ExecutionContextRecord | None:
        payload = self.store.get(PREFIX_CONTEXT + self.session_id)
        if payload is None:
            return None
        try:
            return ExecutionContextRecord.model_validate_json(payload)
        except ValidationError as e:
            logger.warning(f"Could not recover execution context: {e}")
            return None

    # =========================================================================
    # REPORTING
    # =========================================================================

    def build_session_context_summary(self) -> str:
        """
        Summarize the cached session for injection into execution context.

        Returns:
            Multi-line summary of the requirement, task statuses and
            completed task outputs.
        """
        lines = ["## Task Execution Context Summary", f"Session ID: {self.session_id}", ""]

        requirement = self.get_cached_requirement()
        if requirement:
            lines.extend(["### Original Requirement", requirement, ""])

        tasks = self.get_cached_task_list()
        if tasks:
            lines.append(f"### Task List ({len(tasks)} tasks)")
            lines.extend(str(task) for task in tasks)
            lines.append("")

        completed = [t for t in tasks if t.is_completed()]
        if completed:
            lines.append(f"### Completed Tasks ({len(completed)})")
            for task in completed:
                result = self.get_cached_task_result(task.id)
                if result is not None and result.output:
                    lines.append(f"  #{task.id}: {_truncate(result.output, self.preview_chars)}")
            lines.append("")

        return "\n".join(lines)

    def get_cache_stats(self) -> str:
        """Describe what is cached for the current session."""
        tasks = self.get_cached_task_list()
        counts = {status: 0 for status in TaskStatus}
        for task in tasks:
            counts[task.status] += 1

        requirement = "cached" if self.get_cached_requirement() is not None else "not cached"
        analysis = "cached" if self.get_cached_analysis_result() is not None else "not cached"

        return "\n".join([
            "Task Context Cache Statistics",
            "=" * 39,
            f"Session ID: {self.session_id}",
            f"Requirement: {requirement}",
            f"Analysis result: {analysis}",
            f"Task list: {len(tasks)} tasks",
            f"  completed: {counts[TaskStatus.COMPLETED]}",
            f"  in progress: {counts[TaskStatus.IN_PROGRESS]}",
            f"  pending: {counts[TaskStatus.PENDING]}",
            f"  skipped: {counts[TaskStatus.SKIPPED]}",
            "=" * 39,
        ])
