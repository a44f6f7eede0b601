"""Unit tests for the dependency resolver."""

import pytest

from taskloop.core.exceptions import CyclicDependencyError
from taskloop.decomposition.dependency_resolver import DependencyResolver
from taskloop.decomposition.models import Task


def _complete(task: Task) -> None:
    task.start()
    task.complete(f"output {task.id}")


class TestCycleDetection:
    """Tests for DAG validation."""

    def test_valid_dag(self, sample_tasks: list[Task]) -> None:
        """Test an acyclic graph validates."""
        resolver = DependencyResolver(sample_tasks)

        resolver.validate()
        assert resolver.is_valid_dag()
        assert resolver.find_cycle() is None

    def test_two_task_cycle(self) -> None:
        """Test a mutual dependency is reported as a closed path."""
        tasks = [
            Task(id=1, description="A", dependencies=[2]),
            Task(id=2, description="B", dependencies=[1]),
        ]
        resolver = DependencyResolver(tasks)

        with pytest.raises(CyclicDependencyError) as exc_info:
            resolver.validate()

        assert exc_info.value.cycle == [1, 2, 1]
        assert "1 -> 2 -> 1" in str(exc_info.value)

    def test_self_dependency(self) -> None:
        """Test a task depending on itself is a cycle."""
        resolver = DependencyResolver([Task(id=1, description="A", dependencies=[1])])

        assert resolver.find_cycle() == [1, 1]
        assert not resolver.is_valid_dag()

    def test_cycle_deep_in_graph(self) -> None:
        """Test a cycle not involving the first task is found."""
        tasks = [
            Task(id=1, description="Root"),
            Task(id=2, description="B", dependencies=[1, 4]),
            Task(id=3, description="C", dependencies=[2]),
            Task(id=4, description="D", dependencies=[3]),
        ]

        cycle = DependencyResolver(tasks).find_cycle()

        assert cycle is not None
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {2, 3, 4}

    def test_missing_dependency_is_not_a_cycle(self) -> None:
        """Test an unknown dependency ID does not fail validation."""
        resolver = DependencyResolver([Task(id=1, description="A", dependencies=[9])])

        resolver.validate()


class TestReadiness:
    """Tests for ready-task queries."""

    def test_initial_ready_tasks(self, sample_tasks: list[Task]) -> None:
        """Test only tasks without dependencies are ready at first."""
        resolver = DependencyResolver(sample_tasks)

        assert [t.id for t in resolver.get_ready_tasks()] == [1]

    def test_dependency_completion_unlocks_task(self) -> None:
        """Test task 2 becomes ready only after task 1 completes."""
        task1 = Task(id=1, description="Design")
        task2 = Task(id=2, description="Implement", dependencies=[1])
        resolver = DependencyResolver([task1, task2])

        assert task2 not in resolver.get_ready_tasks()

        _complete(task1)

        assert [t.id for t in resolver.get_ready_tasks()] == [2]

    def test_ready_tasks_only_have_completed_dependencies(self, sample_tasks: list[Task]) -> None:
        """Test no ready task has an uncompleted dependency at any stage."""
        resolver = DependencyResolver(sample_tasks)
        by_id = {t.id: t for t in sample_tasks}

        for task in sample_tasks:
            for ready in resolver.get_ready_tasks():
                assert all(by_id[d].is_completed() for d in ready.dependencies)
            if resolver.can_execute(task):
                _complete(task)

    def test_partial_dependencies(self, sample_tasks: list[Task]) -> None:
        """Test a task waits for every dependency."""
        resolver = DependencyResolver(sample_tasks)
        _complete(sample_tasks[0])
        _complete(sample_tasks[1])

        assert [t.id for t in resolver.get_ready_tasks()] == [3]
        assert resolver.get_unmet_dependencies(sample_tasks[3]) == [3]

    def test_missing_dependency_never_ready(self) -> None:
        """Test a task depending on an unknown ID is never ready."""
        task = Task(id=1, description="Orphan", dependencies=[7])
        resolver = DependencyResolver([task])

        assert resolver.get_ready_tasks() == []
        assert resolver.is_blocked_forever(task)

    def test_skipped_dependency_blocks_forever(self, sample_tasks: list[Task]) -> None:
        """Test a skipped dependency can never be satisfied."""
        resolver = DependencyResolver(sample_tasks)
        sample_tasks[0].skip("not needed")

        assert resolver.is_blocked_forever(sample_tasks[1])
        assert not resolver.is_blocked_forever(sample_tasks[0])

    def test_dependent_tasks(self, sample_tasks: list[Task]) -> None:
        resolver = DependencyResolver(sample_tasks)

        assert [t.id for t in resolver.get_dependent_tasks(1)] == [2, 3]
        assert resolver.get_dependent_tasks(4) == []


class TestCriticalPath:
    """Tests for critical path computation."""

    def test_diamond(self, sample_tasks: list[Task]) -> None:
        """Test the longest chain runs from prerequisite to final task."""
        path = DependencyResolver(sample_tasks).get_critical_path()

        assert [t.id for t in path] == [1, 2, 4]

    def test_independent_tasks(self) -> None:
        """Test independent tasks give a one-task path."""
        tasks = [Task(id=i, description=f"T{i}") for i in (1, 2, 3)]

        assert [t.id for t in DependencyResolver(tasks).get_critical_path()] == [1]

    def test_empty(self) -> None:
        assert DependencyResolver([]).get_critical_path() == []

    def test_cycle_raises(self) -> None:
        tasks = [
            Task(id=1, description="A", dependencies=[2]),
            Task(id=2, description="B", dependencies=[1]),
        ]

        with pytest.raises(CyclicDependencyError):
            DependencyResolver(tasks).get_critical_path()

    def test_execution_stats(self, sample_tasks: list[Task]) -> None:
        """Test the statistics text."""
        stats = DependencyResolver(sample_tasks).get_execution_stats()

        assert "Total tasks: 4" in stats
        assert "Tasks with dependencies: 3" in stats
        assert "Critical path: 1 -> 2 -> 4" in stats


class TestExecutionOrder:
    """Tests for dependency-respecting task order."""

    def test_list_order_kept_without_constraints(self, sample_tasks: list[Task]) -> None:
        order = DependencyResolver(sample_tasks).get_execution_order()

        assert [t.id for t in order] == [1, 2, 3, 4]

    def test_later_dependency_moves_task_back(self) -> None:
        """Test a task is placed after a dependency listed below it."""
        tasks = [
            Task(id=1, description="Implement parser", dependencies=[3]),
            Task(id=2, description="Write docs"),
            Task(id=3, description="Design grammar"),
            Task(id=4, description="Review parser", dependencies=[1]),
        ]

        order = DependencyResolver(tasks).get_execution_order()

        assert [t.id for t in order] == [2, 3, 1, 4]

    def test_missing_dependency_does_not_constrain(self) -> None:
        tasks = [
            Task(id=1, description="Orphan", dependencies=[9]),
            Task(id=2, description="Other"),
        ]

        assert [t.id for t in DependencyResolver(tasks).get_execution_order()] == [1, 2]

    def test_cycle_raises(self) -> None:
        tasks = [
            Task(id=1, description="A", dependencies=[2]),
            Task(id=2, description="B", dependencies=[1]),
        ]

        with pytest.raises(CyclicDependencyError):
            DependencyResolver(tasks).get_execution_order()


@pytest.mark.slow
class TestLongChains:
    """Tests for graphs deeper than the interpreter recursion limit."""

    CHAIN_LENGTH = 5000

    @pytest.fixture
    def chain(self) -> list[Task]:
        """Task n depends on task n - 1."""
        return [
            Task(id=i, description=f"Step {i}", dependencies=[i - 1] if i > 1 else [])
            for i in range(1, self.CHAIN_LENGTH + 1)
        ]

    def test_long_chain_validates(self, chain: list[Task]) -> None:
        assert DependencyResolver(chain).find_cycle() is None

    def test_long_chain_cycle_found(self, chain: list[Task]) -> None:
        chain[0] = Task(id=1, description="Step 1", dependencies=[self.CHAIN_LENGTH])

        cycle = DependencyResolver(chain).find_cycle()

        assert cycle is not None
        assert len(cycle) == self.CHAIN_LENGTH + 1

    def test_long_chain_critical_path(self, chain: list[Task]) -> None:
        path = DependencyResolver(list(reversed(chain))).get_critical_path()

        assert len(path) == self.CHAIN_LENGTH
        assert path[0].id == 1
        assert path[-1].id == self.CHAIN_LENGTH
