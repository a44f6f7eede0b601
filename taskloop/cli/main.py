"""Main CLI entry point using Typer."""

from collections.abc import Callable
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from taskloop import __version__
from taskloop.core.config import Settings, get_settings
from taskloop.core.exceptions import DecompositionError, TaskLoopError
from taskloop.core.logging import configure_logging
from taskloop.core.orchestrator import (
    ExecutionReport,
    PlanSession,
    TodoListManager,
    render_todo_list,
)
from taskloop.decomposition.decomposer import OutlineDecomposer
from taskloop.decomposition.dependency_resolver import DependencyResolver
from taskloop.decomposition.models import TodoList
from taskloop.execution.backends import PlaceholderBackend
from taskloop.execution.error_classifier import classify_failure
from taskloop.execution.interactive import ConsolePrompt
from taskloop.execution.router import (
    get_execution_type,
    get_routing_explanation,
    get_target_name,
    route as route_task,
)
from taskloop.knowledge.context_cache import TaskContextCache
from taskloop.knowledge.store import ContextStore, SqlContextStore, open_store

app = typer.Typer(
    name="taskloop",
    help="taskloop - decompose a requirement and work through it task by task",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]taskloop[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    taskloop - sequential task-list orchestration.

    Turns a requirement into a dependency-checked todo list, routes each task
    to an execution strategy and asks you what to do when a task keeps failing.
    """
    configure_logging(get_settings())


# =============================================================================
# HELPERS
# =============================================================================


def _load_requirement(requirement: str) -> str:
    """Read the requirement from a file when given an existing path."""
    path = Path(requirement)
    try:
        is_file = path.is_file()
    except OSError:
        # Long multi-line requirements are not valid path names
        is_file = False

    if is_file:
        console.print(f"[dim]Loaded requirement from {path}[/dim]")
        return path.read_text(encoding="utf-8")
    return requirement


def _resolve_settings(delay_ms: int | None, memory: bool) -> Settings:
    settings = get_settings()
    update: dict[str, object] = {}
    if delay_ms is not None:
        update["taskloop_retry_delay_ms"] = delay_ms
    if memory:
        update["taskloop_cache_backend"] = "memory"
    return settings.model_copy(update=update) if update else settings


def _close_store(store: ContextStore) -> None:
    if isinstance(store, SqlContextStore):
        store.close()


def _print_report(report: ExecutionReport) -> None:
    color = "green" if report.state.value == "completed" else "red"
    console.print(
        Panel(
            escape(report.render()),
            title=f"[{color}]Plan {report.state.value}[/{color}]",
            expand=False,
        )
    )


def _execute(manager: TodoListManager, session: PlanSession) -> None:
    manager.display_plan(session)
    console.print(f"[dim]Session: {session.session_id}[/dim]")
    report = manager.run(session)
    _print_report(report)


def _run_with_manager(settings: Settings, action: Callable[[TodoListManager], None]) -> None:
    """Build a manager, run the action and map failures to exit codes."""
    store = open_store(settings)
    manager = TodoListManager(
        decomposer=OutlineDecomposer(),
        backend=PlaceholderBackend(),
        prompt=ConsolePrompt(console),
        store=store,
        settings=settings,
        console=console,
    )
    try:
        action(manager)
    except TaskLoopError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except (EOFError, KeyboardInterrupt) as e:
        console.print("\n[yellow]Interrupted. Resume the plan with 'taskloop resume'.[/yellow]")
        raise typer.Exit(1) from e
    finally:
        _close_store(store)


# =============================================================================
# COMMANDS
# =============================================================================


# Outline requirements start with "- ", which click would read as an option
OUTLINE_CONTEXT = {"ignore_unknown_options": True}


@app.command(context_settings=OUTLINE_CONTEXT)
def run(
    requirement: str = typer.Argument(..., help="Requirement text or path to a requirement file"),
    delay_ms: int | None = typer.Option(
        None,
        "--delay-ms",
        min=0,
        help="Backoff between automatic retries in milliseconds",
    ),
    memory: bool = typer.Option(
        False,
        "--memory",
        help="Keep the context cache in memory instead of the database",
    ),
) -> None:
    """
    Decompose a requirement and execute the resulting todo list.
    """
    settings = _resolve_settings(delay_ms, memory)
    text = _load_requirement(requirement)

    console.print(
        Panel(
            escape(text.strip()[:500]),
            title="[bold]Requirement[/bold]",
            expand=False,
        )
    )

    def action(manager: TodoListManager) -> None:
        session = manager.create_todo_list(text)
        _execute(manager, session)

    _run_with_manager(settings, action)


@app.command()
def resume(
    session_id: str = typer.Argument(..., help="Session ID printed by a previous run"),
    delay_ms: int | None = typer.Option(
        None,
        "--delay-ms",
        min=0,
        help="Backoff between automatic retries in milliseconds",
    ),
) -> None:
    """
    Continue a cached plan from its first unresolved task.
    """
    settings = _resolve_settings(delay_ms, memory=False)

    def action(manager: TodoListManager) -> None:
        session = manager.resume(session_id)
        console.print(f"[bold]Resuming session {session_id}[/bold]")
        console.print(manager.progress_summary(session))
        _execute(manager, session)

    _run_with_manager(settings, action)


@app.command(context_settings=OUTLINE_CONTEXT)
def plan(
    requirement: str = typer.Argument(..., help="Requirement text or path to a requirement file"),
) -> None:
    """
    Decompose and validate a requirement without executing anything.
    """
    text = _load_requirement(requirement)

    try:
        decomposition = OutlineDecomposer().decompose(text)
        if decomposition.is_empty:
            raise DecompositionError("Decomposition produced no subtasks")

        todo_list = TodoList.from_specs(text, decomposition.subtasks, decomposition.rationale)
        resolver = DependencyResolver(todo_list.tasks)
        todo_list = todo_list.model_copy(update={"tasks": resolver.get_execution_order()})
    except TaskLoopError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e

    console.print(render_todo_list(todo_list))
    if decomposition.rationale:
        console.print(f"[dim]{escape(decomposition.rationale)}[/dim]")

    critical_path = resolver.get_critical_path()
    console.print(
        "[bold]Critical path:[/bold] "
        + " -> ".join(str(t.id) for t in critical_path)
        + f" ({len(critical_path)} tasks)"
    )


@app.command()
def route(
    description: str = typer.Argument(..., help="Task description to route"),
) -> None:
    """
    Show how a task description would be routed.
    """
    decision = route_task(description)

    table = Table(title="Routing Decision", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Decision", decision.value)
    table.add_row("Strategy", get_execution_type(decision).value)
    table.add_row("Target", get_target_name(decision))
    table.add_row("Rationale", get_routing_explanation(decision))

    console.print(table)


@app.command()
def classify(
    message: str = typer.Argument(..., help="Failure message to classify"),
) -> None:
    """
    Show how a failure message would be classified.
    """
    result = classify_failure(message)
    color = "yellow" if result.error_type.value == "transient" else "red"

    console.print(f"Error type: [{color}]{result.error_type.value.upper()}[/{color}]")
    console.print(f"Max retries: {result.max_retries}")
    console.print(f"Matched rule: {result.matched_rule}")
    if result.matched_pattern is not None:
        console.print(f"Matched pattern: {escape(repr(result.matched_pattern))}")


@app.command("cache-stats")
def cache_stats(
    session_id: str = typer.Argument(..., help="Session ID to inspect"),
) -> None:
    """
    Show what is cached for a session.
    """
    settings = get_settings()
    store = open_store(settings)
    try:
        cache = TaskContextCache(store, session_id=session_id)
        console.print(escape(cache.get_cache_stats()))
    finally:
        _close_store(store)


if __name__ == "__main__":
    app()
