"""Dependency resolver - validates task graphs and answers readiness queries.

The resolver is a read-only view over a todo list's declared dependency
edges. It detects cycles, reports which pending tasks are ready to run and
computes the critical path for reporting. It does not dispatch anything.
"""

import heapq
from collections import defaultdict

from loguru import logger

from taskloop.core.exceptions import CyclicDependencyError
from taskloop.decomposition.models import Task


class DependencyResolver:
    """
    Resolve task dependencies over a fixed task collection.

    Tasks are referenced by their integer IDs. A dependency on an ID that is
    not in the collection never becomes satisfied; it is logged rather than
    treated as fatal.

    Example:
        >>> resolver = DependencyResolver(todo_list.tasks)
        >>> resolver.validate()
        >>> [t.id for t in resolver.get_ready_tasks()]
        [1, 3]
        >>> [t.id for t in resolver.get_critical_path()]
        [1, 2, 4]
    """

    def __init__(self, tasks: list[Task]) -> None:
        """
        Initialize the resolver.

        Args:
            tasks: Tasks to resolve. The list is copied; task objects are
                shared so status changes are visible to later queries.
        """
        self._tasks = list(tasks)
        self._task_map: dict[int, Task] = {t.id: t for t in self._tasks}

    @property
    def edges(self) -> dict[int, list[int]]:
        """Task ID -> declared dependency IDs."""
        return {t.id: list(t.dependencies) for t in self._tasks}

    # =========================================================================
    # CYCLE DETECTION
    # =========================================================================

    def validate(self) -> None:
        """
        Validate that the dependency graph has no cycles.

        Raises:
            CyclicDependencyError: If circular dependencies are detected.
        """
        cycle = self.find_cycle()
        if cycle:
            logger.error(f"Circular dependency detected in task graph: {cycle}")
            raise CyclicDependencyError(cycle)

    def is_valid_dag(self) -> bool:
        """Check that the graph is acyclic."""
        return self.find_cycle() is None

    def find_cycle(self) -> list[int] | None:
        """
        Detect a cycle using DFS with visiting/visited marking.

        The walk keeps an explicit stack so long dependency chains do not
        hit the interpreter recursion limit.

        Returns:
            The first cycle found as a path of task IDs that starts and ends
            on the same task, or None if the graph is acyclic.

        Example:
            >>> DependencyResolver([t1, t2]).find_cycle()  # 1 -> 2 -> 1
            [1, 2, 1]
        """
        WHITE, GRAY, BLACK = 0, 1, 2
        colors: dict[int, int] = {task_id: WHITE for task_id in self._task_map}

        for root in self._tasks:
            if colors[root.id] != WHITE:
                continue

            colors[root.id] = GRAY
            path = [root.id]
            stack = [iter(root.dependencies)]

            while stack:
                dep = next(stack[-1], None)
                if dep is None:
                    stack.pop()
                    colors[path.pop()] = BLACK
                    continue
                if dep not in colors:
                    continue  # Missing tasks cannot close a cycle
                if colors[dep] == GRAY:
                    return path[path.index(dep):] + [dep]
                if colors[dep] == WHITE:
                    colors[dep] = GRAY
                    path.append(dep)
                    stack.append(iter(self._task_map[dep].dependencies))

        return None

    # =========================================================================
    # ORDERING
    # =========================================================================

    def get_execution_order(self) -> list[Task]:
        """
        Order tasks so every task follows the dependencies it declares.

        Kahn's algorithm, always taking the earliest listed task whose
        dependencies are placed, so list order is kept wherever the
        dependencies allow it. Missing dependencies do not constrain order.

        Raises:
            CyclicDependencyError: If the graph is not a DAG.
        """
        self.validate()

        position = {t.id: i for i, t in enumerate(self._tasks)}
        in_degree: dict[int, int] = {}
        dependents: dict[int, list[int]] = defaultdict(list)
        for task in self._tasks:
            deps = [d for d in task.dependencies if d in self._task_map]
            in_degree[task.id] = len(deps)
            for dep in deps:
                dependents[dep].append(task.id)

        heap = [position[task_id] for task_id, degree in in_degree.items() if degree == 0]
        heapq.heapify(heap)
        ordered: list[Task] = []

        while heap:
            task = self._tasks[heapq.heappop(heap)]
            ordered.append(task)
            for dependent in dependents[task.id]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(heap, position[dependent])

        return ordered


    # =========================================================================
    # READINESS
    # =========================================================================

    def can_execute(self, task: Task) -> bool:
        """
        Check if all of a task's dependencies are completed.

        Args:
            task: Task to check.

        Returns:
            True if the task has no dependencies or all are completed.
        """
        for dep_id in task.dependencies:
            dependency = self._task_map.get(dep_id)
            if dependency is None:
                logger.warning(f"Task {task.id} depends on non-existent task {dep_id}")
                return False
            if not dependency.is_completed():
                return False
        return True

    def get_ready_tasks(self) -> list[Task]:
        """Get every pending task whose dependencies are all completed."""
        return [t for t in self._tasks if t.is_pending() and self.can_execute(t)]

    def get_unmet_dependencies(self, task: Task) -> list[int]:
        """Get the dependency IDs of a task that are not completed."""
        unmet = []
        for dep_id in task.dependencies:
            dependency = self._task_map.get(dep_id)
            if dependency is None or not dependency.is_completed():
                unmet.append(dep_id)
        return unmet

    def is_blocked_forever(self, task: Task) -> bool:
        """
        Check whether a task can never become ready.

        A task is permanently blocked when a dependency does not exist or
        was skipped.
        """
        for dep_id in task.dependencies:
            dependency = self._task_map.get(dep_id)
            if dependency is None or dependency.is_skipped():
                return True
        return False

    def get_dependent_tasks(self, task_id: int) -> list[Task]:
        """Get tasks that depend on the given task."""
        return [t for t in self._tasks if task_id in t.dependencies]

    # =========================================================================
    # CRITICAL PATH
    # =========================================================================

    def _calculate_depths(self) -> dict[int, int]:
        """Depth = 1 + max(dependency depth), 1 without dependencies."""
        depths: dict[int, int] = {}

        # Execution order visits every dependency before its dependents
        for task in self.get_execution_order():
            deps = [d for d in task.dependencies if d in self._task_map]
            depths[task.id] = 1 + max((depths[d] for d in deps), default=0)

        return depths

    def get_critical_path(self) -> list[Task]:
        """
        Find the longest dependency chain.

        Starts from the first task at maximum depth and repeatedly steps to
        its deepest dependency.

        Returns:
            Tasks ordered from the ultimate prerequisite to the final task.

        Raises:
            CyclicDependencyError: If the graph is not a DAG.
        """
        if not self._tasks:
            return []

        depths = self._calculate_depths()
        max_depth = max(depths.values())

        current: Task | None = next(t for t in self._tasks if depths[t.id] == max_depth)
        path: list[Task] = []

        while current is not None:
            path.append(current)
            deps = [self._task_map[d] for d in current.dependencies if d in self._task_map]
            current = max(deps, key=lambda t: depths[t.id], default=None)

        return list(reversed(path))

    def get_execution_stats(self) -> str:
        """Summarize task counts and the critical path."""
        critical_path = self.get_critical_path()
        with_deps = sum(1 for t in self._tasks if t.has_dependencies)

        lines = [
            "== Task Dependency Statistics ==",
            f"Total tasks: {len(self._tasks)}",
            f"Tasks with dependencies: {with_deps}",
            f"Critical path length: {len(critical_path)}",
        ]
        if critical_path:
            lines.append("Critical path: " + " -> ".join(str(t.id) for t in critical_path))

        return "\n".join(lines)
