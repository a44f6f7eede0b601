"""Pytest configuration and shared fixtures."""

import io
from collections.abc import Generator, Sequence
from pathlib import Path

import pytest
from loguru import logger
from rich.console import Console

from taskloop.core.config import Settings, clear_settings_cache
from taskloop.core.exceptions import DecompositionError, ExecutionError
from taskloop.core.orchestrator import TodoListManager
from taskloop.decomposition.models import Decomposition, SubtaskSpec, Task
from taskloop.execution.router import TaskRouter
from taskloop.knowledge.store import MemoryContextStore

# =============================================================================
# FAKES
# =============================================================================


class ScriptedPrompt:
    """Operator prompt answering from a fixed list of choices."""

    def __init__(self, choices: Sequence[int] = ()) -> None:
        self.choices = list(choices)
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    def choose(self, title: str, options: Sequence[str]) -> int:
        self.calls.append((title, tuple(options)))
        if not self.choices:
            raise AssertionError(f"Unexpected prompt: {title}")
        return self.choices.pop(0)


class ScriptedBackend:
    """Backend that fails a task with queued messages, then succeeds."""

    def __init__(self, failures: dict[str, list[str]] | None = None) -> None:
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.calls: list[tuple[str, str, str]] = []
        self.contexts: list[str] = []

    def _run(self, kind: str, target: str, task_description: str) -> str:
        self.calls.append((kind, target, task_description))
        queued = self.failures.get(task_description)
        if queued:
            raise ExecutionError(queued.pop(0))
        return f"done: {task_description}"

    def execute_role(self, role: str, task_description: str, context: str) -> str:
        self.contexts.append(context)
        return self._run("role", role, task_description)

    def execute_local_tool(self, tool_name: str, task_description: str) -> str:
        return self._run("local_tool", tool_name, task_description)

    def execute_remote_tool(self, tool_name: str, task_description: str) -> str:
        return self._run("mcp_tool", tool_name, task_description)

    def execute_command(self, command: str, task_description: str) -> str:
        return self._run("command", command, task_description)

    def attempts(self, task_description: str) -> int:
        return sum(1 for _, _, desc in self.calls if desc == task_description)


class StaticDecomposer:
    """Decomposer returning a prepared decomposition."""

    def __init__(
        self,
        decomposition: Decomposition | None = None,
        error: Exception | None = None,
    ) -> None:
        self.decomposition = decomposition or Decomposition()
        self.error = error

    def decompose(self, requirement: str) -> Decomposition:
        if self.error is not None:
            raise self.error
        return self.decomposition


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator:
    """Point settings at temporary paths and an in-memory cache."""
    monkeypatch.setenv("TASKLOOP_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("TASKLOOP_CACHE_BACKEND", "memory")
    monkeypatch.setenv("TASKLOOP_RETRY_DELAY_MS", "0")
    clear_settings_cache()

    yield

    clear_settings_cache()
    # CLI invocations bind sinks to CliRunner streams that close afterwards
    logger.remove()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings with a short, observable retry delay."""
    return Settings(
        taskloop_log_dir=str(tmp_path / "logs"),
        taskloop_cache_backend="memory",
        taskloop_retry_delay_ms=10,
    )


@pytest.fixture
def quiet_console() -> Console:
    """Rich console writing to an in-memory buffer."""
    return Console(file=io.StringIO(), width=120, force_terminal=False)


@pytest.fixture
def memory_store() -> MemoryContextStore:
    return MemoryContextStore()


@pytest.fixture
def make_prompt() -> type[ScriptedPrompt]:
    """Factory for operator prompts answering from a fixed list."""
    return ScriptedPrompt


@pytest.fixture
def make_backend() -> type[ScriptedBackend]:
    """Factory for backends failing tasks with queued messages."""
    return ScriptedBackend


@pytest.fixture
def log_messages() -> Generator[list[str], None, None]:
    """Collect loguru messages at WARNING and above."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="WARNING")

    yield messages

    logger.remove(handler_id)


@pytest.fixture
def sleeps() -> list[float]:
    """Durations passed to the injected sleep function."""
    return []


@pytest.fixture
def sample_tasks() -> list[Task]:
    """Diamond-shaped task graph: 1 -> (2, 3) -> 4."""
    return [
        Task(id=1, description="Design the storage schema"),
        Task(id=2, description="Implement the repository layer", dependencies=[1]),
        Task(id=3, description="Implement the cache layer", dependencies=[1]),
        Task(id=4, description="Review the persistence code", dependencies=[2, 3]),
    ]


@pytest.fixture
def three_task_decomposition() -> Decomposition:
    """Three independent subtasks."""
    return Decomposition.from_descriptions(
        [
            "Audit input handling in module X",
            "Implement stricter validation",
            "Review error messages",
        ],
        rationale="## Constraints\n- Keep the public API\n## Risks\n- Breaking callers",
    )


@pytest.fixture
def make_manager(
    test_settings: Settings,
    quiet_console: Console,
    memory_store: MemoryContextStore,
    sleeps: list[float],
):
    """Factory building a TodoListManager around fakes."""

    def factory(
        decomposition: Decomposition | None = None,
        backend: ScriptedBackend | None = None,
        prompt: ScriptedPrompt | None = None,
        error: Exception | None = None,
        router: TaskRouter | None = None,
    ) -> TodoListManager:
        return TodoListManager(
            decomposer=StaticDecomposer(decomposition, error),
            backend=backend or ScriptedBackend(),
            prompt=prompt or ScriptedPrompt(),
            store=memory_store,
            settings=test_settings,
            router=router,
            console=quiet_console,
            sleep=sleeps.append,
        )

    return factory


@pytest.fixture
def chained_decomposition() -> Decomposition:
    """Task 2 depends on task 1."""
    return Decomposition(
        subtasks=[
            SubtaskSpec(description="Design the token format"),
            SubtaskSpec(description="Implement token parsing", depends_on=[1]),
        ]
    )


@pytest.fixture
def failing_decomposer_error() -> DecompositionError:
    return DecompositionError("service unavailable")


# Markers
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
