"""
Interactive failure handling.

Once automatic retries are exhausted, a human operator decides whether to
retry the task once more, skip it, or abort the whole plan.
"""

from collections.abc import Sequence
from enum import Enum
from typing import Protocol, TextIO, runtime_checkable

from loguru import logger
from rich.console import Console
from rich.markup import escape

from taskloop.decomposition.models import Task, TodoList
from taskloop.execution.error_classifier import (
    ErrorType,
    classify_error,
    describe_error,
    get_max_retries,
)
from taskloop.execution.retry_policy import TaskRetryPolicy


class FailureDecision(str, Enum):
    """Terminal decision for a failed task."""

    RETRY_ONCE = "retry_once"
    SKIP_TASK = "skip_task"
    ABORT_PLAN = "abort_plan"


# =============================================================================
# OPERATOR I/O
# =============================================================================


@runtime_checkable
class OperatorPrompt(Protocol):
    """Present numbered options and block until a valid one is chosen."""

    def choose(self, title: str, options: Sequence[str]) -> int:
        """Return the chosen option number, 1-based."""
        ...


class ConsolePrompt:
    """
    Console implementation of OperatorPrompt.

    Re-displays the menu after any input outside 1..N and waits
    indefinitely for a valid choice.

    Example:
        >>> prompt = ConsolePrompt(stream=io.StringIO("7\\n2\\n"))
        >>> prompt.choose("Pick one", ["Retry", "Skip", "Abort"])
        2
    """

    def __init__(self, console: Console | None = None, stream: TextIO | None = None) -> None:
        """
        Initialize console prompt.

        Args:
            console: Rich console for output (default: stdout console).
            stream: Input stream; reads stdin when omitted.
        """
        self.console = console or Console()
        self.stream = stream

    def choose(self, title: str, options: Sequence[str]) -> int:
        count = len(options)
        while True:
            self.console.print(f"[bold yellow]=== {escape(title)} ===[/bold yellow]")
            for number, option in enumerate(options, start=1):
                self.console.print(f"  {escape(f'[{number}]')} {escape(option)}")

            raw = self.console.input(f"Enter your choice (1-{count}): ", stream=self.stream)
            if self.stream is not None and raw == "":
                raise EOFError("Operator input closed")

            choice = raw.strip()
            if choice.isdigit() and 1 <= int(choice) <= count:
                return int(choice)

            self.console.print(
                f"[red]Invalid choice {escape(repr(choice))}. "
                f"Please enter a number from 1 to {count}.[/red]"
            )


# =============================================================================
# FAILURE HANDLER
# =============================================================================


class InteractiveFailureHandler:
    """
    Decide what happens to a task whose automatic retries are exhausted.

    A permanent error on the first failure is skipped without asking. Once
    the failure count reaches the retry budget the operator is asked.
    Otherwise the task is retried.
    """

    MENU_TITLE = "Task Failure - Your Options"
    MENU_OPTIONS = (
        "Retry once more",
        "Skip this task and continue",
        "Abort entire plan",
    )
    _CHOICES = {
        1: FailureDecision.RETRY_ONCE,
        2: FailureDecision.SKIP_TASK,
        3: FailureDecision.ABORT_PLAN,
    }

    def __init__(self, prompt: OperatorPrompt, console: Console | None = None) -> None:
        self.prompt = prompt
        self.console = console or Console()

    def handle_task_failure(
        self,
        task: Task,
        error_message: str,
        failure_count: int,
    ) -> FailureDecision:
        """
        Report a failure and decide how to proceed.

        Args:
            task: The failed task.
            error_message: Raw failure message.
            failure_count: Failures recorded for the task so far.

        Returns:
            The decision for this task.
        """
        error_type = classify_error(error_message)
        max_retries = get_max_retries(error_type)

        self.console.print()
        self.console.print(
            f"[bold red]TASK FAILURE - Task {task.id}: {escape(task.description)}[/bold red]"
        )
        self.console.print(f"[yellow]Failure Count: {failure_count}/{max_retries}[/yellow]")
        self.console.print(f"Error Type: {error_type.value.upper()}")
        self.console.print(f"Error Message: {escape(describe_error(error_message))}")

        if error_type == ErrorType.PERMANENT and failure_count == 1:
            self.console.print("[yellow]This is a permanent error. Skipping task...[/yellow]")
            logger.info(f"Task {task.id} skipped without prompt (permanent error)")
            return FailureDecision.SKIP_TASK

        if failure_count >= max_retries:
            return self.ask_user_for_decision(task)

        self.console.print(f"Retrying... (attempt {failure_count + 1} of {max_retries})")
        return FailureDecision.RETRY_ONCE

    def ask_user_for_decision(self, task: Task) -> FailureDecision:
        """Block until the operator picks retry, skip or abort."""
        self.console.print()
        self.console.print(f"Task {task.id} has failed after multiple retries.")

        choice = self.prompt.choose(self.MENU_TITLE, self.MENU_OPTIONS)
        decision = self._CHOICES[choice]

        if decision == FailureDecision.RETRY_ONCE:
            self.console.print("Retrying task...")
        elif decision == FailureDecision.SKIP_TASK:
            self.console.print("[yellow]Task skipped.[/yellow]")
        else:
            self.console.print("[bold red]Plan aborted by user.[/bold red]")

        logger.info(f"Operator chose {decision.value} for task {task.id}")
        return decision

    def notify_recovery(self, task: Task, retry_count: int) -> None:
        """Notify that a task succeeded after retrying."""
        self.console.print(
            f"[green]TASK RECOVERED - Task {task.id} succeeded after "
            f"{retry_count} retry attempt(s)[/green]"
        )

    def notify_task_skipped(self, task: Task, reason: str) -> None:
        """Notify that a task was skipped for good."""
        self.console.print()
        self.console.print(
            f"[yellow]TASK SKIPPED - Task {task.id}: {escape(task.description)}[/yellow]"
        )
        self.console.print(f"Reason: {escape(reason)}")

    def show_execution_summary(self, todo_list: TodoList, retry_policy: TaskRetryPolicy) -> None:
        """Print completed and skipped counts with skip reasons."""
        skipped = retry_policy.get_skipped_tasks()

        self.console.print()
        self.console.print("[bold]=== Execution Summary ===[/bold]")
        self.console.print(
            f"[green]Completed: {todo_list.completed_task_count}/"
            f"{todo_list.total_task_count}[/green]"
        )

        if skipped:
            self.console.print(f"[yellow]Skipped: {len(skipped)}[/yellow]")
            self.console.print("[yellow]Skipped tasks and reasons:[/yellow]")
            for task_id in skipped:
                reason = retry_policy.get_failure_reason(task_id)
                self.console.print(f"  - Task {task_id}: {escape(reason)}")
