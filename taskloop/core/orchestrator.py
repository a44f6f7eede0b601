"""Todo list manager - drives a plan from requirement to completion.

The manager decomposes a requirement into a validated todo list and then
walks it cursor by cursor: route the current task, dispatch it to a backend,
retry transient failures, hand exhausted failures to the operator and write
every resolution through to the session's context cache.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from loguru import logger
from pydantic import BaseModel, Field
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from taskloop.core.config import Settings, get_settings
from taskloop.core.exceptions import (
    DecompositionError,
    PlanNotActiveError,
    SessionNotFoundError,
    TaskStateError,
)
from taskloop.decomposition.decomposer import Decomposer
from taskloop.decomposition.dependency_resolver import DependencyResolver
from taskloop.decomposition.models import Task, TaskStatus, TodoList
from taskloop.execution.backends import ExecutionBackend, dispatch
from taskloop.execution.error_classifier import classify_error, get_max_retries
from taskloop.execution.interactive import (
    FailureDecision,
    InteractiveFailureHandler,
    OperatorPrompt,
)
from taskloop.execution.retry_policy import TaskRetryPolicy
from taskloop.execution.router import (
    TaskRouter,
    get_execution_type,
    get_routing_explanation,
    get_target_name,
)
from taskloop.knowledge.context_cache import TaskContextCache
from taskloop.knowledge.execution_context import ExecutionContext
from taskloop.knowledge.store import ContextStore, open_store

UNKNOWN_ERROR = "Unknown error"

# =============================================================================
# SESSION STATE
# =============================================================================


class PlanState(str, Enum):
    """Lifecycle of a plan session."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABORTED = "aborted"


class StepOutcome(str, Enum):
    """Result of one execution step."""

    CONTINUE = "continue"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class PlanSession:
    """Everything owned by one in-flight plan."""

    todo_list: TodoList
    retry_policy: TaskRetryPolicy
    resolver: DependencyResolver
    context: ExecutionContext
    state: PlanState = PlanState.ACTIVE

    @property
    def session_id(self) -> str:
        return self.context.session_id

    @property
    def is_active(self) -> bool:
        return self.state == PlanState.ACTIVE


class ExecutionReport(BaseModel):
    """Final accounting of a plan."""

    session_id: str
    state: PlanState
    total: int = Field(..., ge=0)
    completed: list[int] = Field(default_factory=list)
    skipped: dict[int, str] = Field(
        default_factory=dict,
        description="Skipped task ID -> reason",
    )

    @property
    def completed_count(self) -> int:
        return len(self.completed)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def render(self) -> str:
        lines = [
            f"Plan {self.state.value} (session: {self.session_id})",
            f"Completed: {self.completed_count}/{self.total}",
            f"Skipped: {self.skipped_count}",
        ]
        lines.extend(f"  - Task {task_id}: {reason}" for task_id, reason in self.skipped.items())
        return "\n".join(lines)


# =============================================================================
# DISPLAY
# =============================================================================


_STATUS_STYLES = {
    TaskStatus.PENDING: "dim",
    TaskStatus.IN_PROGRESS: "bold cyan",
    TaskStatus.COMPLETED: "green",
    TaskStatus.SKIPPED: "yellow",
}


def render_todo_list(todo_list: TodoList, router: TaskRouter | None = None) -> Table:
    """Render a todo list as a rich table with each task's route."""
    router = router or TaskRouter()
    table = Table(title="Todo List")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Task", style="bold")
    table.add_column("Depends on")
    table.add_column("Route")
    table.add_column("Status")

    for index, task in enumerate(todo_list.tasks):
        decision = router.route(task.description)
        marker = ">" if index == todo_list.current_index else ""
        style = _STATUS_STYLES[task.status]
        table.add_row(
            f"{marker}{task.id}",
            escape(task.description),
            ", ".join(str(d) for d in task.dependencies) or "-",
            f"{get_execution_type(decision).value}:{get_target_name(decision)}",
            f"[{style}]{task.status.value}[/{style}]",
        )

    return table


# =============================================================================
# MANAGER
# =============================================================================


class TodoListManager:
    """
    Create and execute todo lists.

    Example:
        >>> manager = TodoListManager(OutlineDecomposer(), PlaceholderBackend(), prompt)
        >>> session = manager.create_todo_list("Harden module X")
        >>> report = manager.run(session)
        >>> report.completed_count
        1
    """

    def __init__(
        self,
        decomposer: Decomposer,
        backend: ExecutionBackend,
        prompt: OperatorPrompt,
        store: ContextStore | None = None,
        settings: Settings | None = None,
        router: TaskRouter | None = None,
        console: Console | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the manager.

        Args:
            decomposer: Decomposition service.
            backend: Execution backend for routed tasks.
            prompt: Operator prompt for exhausted failures.
            store: Context store; selected from settings when omitted.
            settings: Optional settings override.
            router: Optional router override.
            console: Rich console for operator-facing output.
            sleep: Blocking sleep used for the retry backoff.
        """
        self.settings = settings or get_settings()
        self.decomposer = decomposer
        self.backend = backend
        self.store = store if store is not None else open_store(self.settings)
        self.router = router or TaskRouter()
        self.console = console or Console()
        self.handler = InteractiveFailureHandler(prompt, self.console)
        self._sleep = sleep

    # =========================================================================
    # CREATION
    # =========================================================================

    def create_todo_list(self, requirement: str) -> PlanSession:
        """
        Decompose a requirement into a validated plan session.

        Tasks are kept in decomposition order except where a task names a
        later task as a dependency; such tasks move after their dependencies.

        Args:
            requirement: Requirement text.

        Returns:
            Active session with the first task in progress.

        Raises:
            DecompositionError: If decomposition fails or yields no subtasks.
            CyclicDependencyError: If the declared dependencies form a cycle.
        """
        logger.info(f"Creating todo list for requirement: {requirement[:100]}")

        try:
            decomposition = self.decomposer.decompose(requirement)
        except DecompositionError:
            raise
        except Exception as e:
            raise DecompositionError(f"Decomposition failed: {e}") from e

        if decomposition.is_empty:
            raise DecompositionError("Decomposition produced no subtasks")

        todo_list = TodoList.from_specs(
            requirement,
            decomposition.subtasks,
            analysis_result=decomposition.rationale,
        )
        resolver = DependencyResolver(todo_list.tasks)
        ordered = resolver.get_execution_order()
        if [t.id for t in ordered] != [t.id for t in todo_list.tasks]:
            logger.info(
                "Reordered tasks to follow declared dependencies: "
                + " -> ".join(str(t.id) for t in ordered)
            )
            todo_list = todo_list.model_copy(update={"tasks": ordered})
            resolver = DependencyResolver(todo_list.tasks)

        cache = TaskContextCache(
            self.store,
            preview_chars=self.settings.taskloop_context_preview_chars,
        )
        context = ExecutionContext(requirement, cache)
        context.set_analysis_result(decomposition.rationale)

        session = PlanSession(
            todo_list=todo_list,
            retry_policy=self._new_retry_policy(),
            resolver=resolver,
            context=context,
        )
        self._start_current(session)
        context.cache_task_list(todo_list.tasks)
        context.persist()

        logger.info(
            f"Todo list created with {todo_list.total_task_count} tasks "
            f"(session: {session.session_id})"
        )
        return session

    def resume(self, session_id: str) -> PlanSession:
        """
        Rebuild a plan session from the context cache.

        Tasks that were in progress when the process stopped run again. The
        cursor resumes at the first unresolved task.

        Raises:
            SessionNotFoundError: If nothing was cached for the session.
            CyclicDependencyError: If the cached graph is not a DAG.
        """
        cache = TaskContextCache(
            self.store,
            session_id=session_id,
            preview_chars=self.settings.taskloop_context_preview_chars,
        )
        requirement = cache.get_cached_requirement()
        tasks = cache.get_cached_task_list()
        if requirement is None or not tasks:
            raise SessionNotFoundError(f"No cached plan for session {session_id}")

        tasks = [
            t.model_copy(update={"status": TaskStatus.PENDING}) if t.is_in_progress() else t
            for t in tasks
        ]
        cursor = next(
            (i for i, t in enumerate(tasks) if not t.status.is_resolved),
            len(tasks),
        )

        context = ExecutionContext.recover(cache)
        if context is None:
            context = ExecutionContext(requirement, cache)
            context.set_analysis_result(cache.get_cached_analysis_result())

        todo_list = TodoList(
            requirement=requirement,
            tasks=tasks,
            current_index=cursor,
            analysis_result=context.analysis_result,
        )
        resolver = DependencyResolver(todo_list.tasks)
        resolver.validate()

        retry_policy = self._new_retry_policy()
        for task in todo_list.get_skipped_tasks():
            retry_policy.mark_skipped(task.id, task.skip_reason or "Unknown reason")

        session = PlanSession(
            todo_list=todo_list,
            retry_policy=retry_policy,
            resolver=resolver,
            context=context,
        )
        self._start_current(session)

        logger.info(
            f"Resumed session {session_id} at task {cursor + 1} of {len(tasks)}"
        )
        return session

    def _new_retry_policy(self) -> TaskRetryPolicy:
        return TaskRetryPolicy(
            retry_delay_ms=self.settings.taskloop_retry_delay_ms,
            sleep=self._sleep,
        )

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def run(self, session: PlanSession) -> ExecutionReport:
        """Execute steps until the plan completes or is aborted."""
        self._require_active(session)
        while self.execute_current_task(session) == StepOutcome.CONTINUE:
            pass
        return self.report(session)

    def execute_current_task(self, session: PlanSession) -> StepOutcome:
        """
        Resolve the task at the cursor.

        Tasks already skipped by the retry policy, or whose dependencies
        can no longer be completed, are skipped without executing. The next
        runnable task is then routed, dispatched and retried until it
        completes, is skipped, or the operator aborts the plan.

        Returns:
            CONTINUE while tasks remain, otherwise COMPLETED or ABORTED.

        Raises:
            PlanNotActiveError: If the session already completed or aborted.
            TaskStateError: If a task is ordered before a dependency that is
                still pending.
        """
        self._require_active(session)
        todo_list = session.todo_list

        task = self._next_runnable_task(session)
        if task is None:
            return self._finish(session)

        todo_list.start_current_task()
        decision = self.router.route(task.description)
        logger.info(f"Task {task.id}: {get_routing_explanation(decision)}")
        self.console.print(
            f"\n[bold cyan]Task {task.id}/{todo_list.total_task_count}:[/bold cyan] "
            f"{escape(task.description)} "
            f"[dim]({get_execution_type(decision).value}: {get_target_name(decision)})[/dim]"
        )

        while True:
            context_text = self.build_context(session)
            try:
                output = dispatch(self.backend, decision, task, context_text)
            except Exception as e:
                message = str(e) or UNKNOWN_ERROR
                outcome = self._handle_failure(session, task, message)
                if outcome is None:
                    continue
                return outcome

            self._complete_current(session, task, output)
            return self._advance(session)

    def _next_runnable_task(self, session: PlanSession) -> Task | None:
        """Skip past tasks that must not run and return the current one."""
        todo_list = session.todo_list
        policy = session.retry_policy

        while (task := todo_list.get_current_task()) is not None:
            if policy.is_skipped(task.id):
                logger.info(f"Task {task.id} already skipped by retry policy, advancing")
                self._skip_current(session, policy.get_failure_reason(task.id))
                continue

            unmet = session.resolver.get_unmet_dependencies(task)
            if unmet:
                if not session.resolver.is_blocked_forever(task):
                    raise TaskStateError(
                        f"Task {task.id} is ordered before its pending dependencies {unmet}"
                    )
                if not session.resolver.get_ready_tasks():
                    logger.warning("No executable tasks remain: every pending task is blocked")
                reason = "Dependencies not completed: " + ", ".join(str(d) for d in unmet)
                self._skip_current(session, reason)
                continue

            return task

        return None

    def _handle_failure(
        self,
        session: PlanSession,
        task: Task,
        message: str,
    ) -> StepOutcome | None:
        """
        Apply the retry flow to a failed attempt.

        Returns:
            None to retry the task, otherwise the step outcome.
        """
        policy = session.retry_policy
        failure_count = task.record_failure(message)
        should_retry = policy.record_failure(task.id, message)
        budget = get_max_retries(classify_error(message))

        if should_retry and failure_count < budget:
            self.console.print(
                f"[yellow]Task {task.id} failed ({escape(message)}), "
                f"retrying ({failure_count}/{budget})...[/yellow]"
            )
            policy.wait_before_retry()
            return None

        decision = self.handler.handle_task_failure(task, message, failure_count)

        if decision == FailureDecision.RETRY_ONCE:
            policy.pardon(task.id)
            task.failure_count = max(task.failure_count - 1, 0)
            return None

        if decision == FailureDecision.SKIP_TASK:
            self._skip_current(session, message)
            return self._advance(session)

        return self._abort(session, task)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def _start_current(self, session: PlanSession) -> None:
        """Mark the current task in progress if its dependencies are met."""
        task = session.todo_list.get_current_task()
        if task is not None and session.resolver.can_execute(task):
            session.todo_list.start_current_task()

    def _complete_current(self, session: PlanSession, task: Task, output: str) -> None:
        retries = task.failure_count
        session.todo_list.complete_current_task(output)
        session.retry_policy.record_success(task.id)
        session.context.record_task_result(task.id, task.description, output, success=True)
        session.context.cache_task_list(session.todo_list.tasks)

        logger.info(f"Task {task.id} completed")
        self.console.print(f"[green]Task {task.id} completed[/green]")
        if retries:
            self.handler.notify_recovery(task, retries)

    def _skip_current(self, session: PlanSession, reason: str) -> None:
        task = session.todo_list.skip_current_task(reason)
        session.retry_policy.mark_skipped(task.id, reason)
        session.context.record_task_result(task.id, task.description, reason, success=False)
        session.context.cache_task_list(session.todo_list.tasks)

        logger.warning(f"Task {task.id} skipped: {reason}")
        self.handler.notify_task_skipped(task, reason)

    def _advance(self, session: PlanSession) -> StepOutcome:
        if session.todo_list.is_completed():
            return self._finish(session)
        self._start_current(session)
        return StepOutcome.CONTINUE

    def _finish(self, session: PlanSession) -> StepOutcome:
        session.state = PlanState.COMPLETED
        session.context.persist()
        self.handler.show_execution_summary(session.todo_list, session.retry_policy)
        logger.info(
            f"Plan completed: {session.todo_list.completed_task_count}/"
            f"{session.todo_list.total_task_count} tasks (session: {session.session_id})"
        )
        return StepOutcome.COMPLETED

    def _abort(self, session: PlanSession, task: Task) -> StepOutcome:
        session.state = PlanState.ABORTED
        session.context.add_decision(
            f"Abort plan at task {task.id}",
            task.last_error or "Operator abort",
        )
        session.context.persist()
        logger.warning(f"Plan aborted at task {task.id} (session: {session.session_id})")
        return StepOutcome.ABORTED

    def _require_active(self, session: PlanSession) -> None:
        if not session.is_active:
            raise PlanNotActiveError(
                f"Session {session.session_id} is {session.state.value}"
            )

    # =========================================================================
    # QUERIES
    # =========================================================================

    def build_context(self, session: PlanSession) -> str:
        """
        Build the briefing text handed to role-based execution.

        Includes the requirement, the decomposition rationale, completed
        tasks with their outputs and the cached session summary.
        """
        todo_list = session.todo_list
        parts = [f"## Original Requirement\n{todo_list.requirement}"]

        if todo_list.analysis_result:
            parts.append(f"## Analysis\n{todo_list.analysis_result}")

        completed = todo_list.get_completed_tasks()
        if completed:
            lines = ["## Completed Tasks"]
            for task in completed:
                lines.append(f"- Task {task.id}: {task.description}")
                lines.append(f"  Output: {task.output}")
            parts.append("\n".join(lines))

        summary = session.context.get_session_context_summary()
        if summary:
            parts.append(summary)

        return "\n\n".join(parts)

    def progress_summary(self, session: PlanSession) -> str:
        """One-paragraph progress description."""
        todo_list = session.todo_list
        lines = [
            f"Progress: {todo_list.completed_task_count}/{todo_list.total_task_count} "
            f"tasks completed ({todo_list.progress_percentage}%)",
        ]
        skipped = todo_list.get_skipped_tasks()
        if skipped:
            lines.append(f"Skipped: {len(skipped)}")

        current = todo_list.get_current_task()
        if current is not None and session.is_active:
            lines.append(f"Current: Task {current.id}: {current.description}")
        else:
            lines.append(f"State: {session.state.value}")

        return "\n".join(lines)

    def report(self, session: PlanSession) -> ExecutionReport:
        todo_list = session.todo_list
        return ExecutionReport(
            session_id=session.session_id,
            state=session.state,
            total=todo_list.total_task_count,
            completed=[t.id for t in todo_list.get_completed_tasks()],
            skipped={
                t.id: t.skip_reason or session.retry_policy.get_failure_reason(t.id)
                for t in todo_list.get_skipped_tasks()
            },
        )

    def display_plan(self, session: PlanSession) -> None:
        """Print the todo list and its dependency statistics."""
        self.console.print(render_todo_list(session.todo_list, self.router))
        self.console.print(f"[dim]{escape(session.resolver.get_execution_stats())}[/dim]")
