"""
Execution context - the running record used to brief each execution step.

Holds the requirement, the decomposition rationale with the constraints and
risks extracted from it, key decisions and per-task results. Every change
is written through to the session's TaskContextCache.
"""

from loguru import logger

from taskloop.decomposition.models import Task
from taskloop.knowledge.context_cache import (
    ExecutionContextRecord,
    TaskContextCache,
    TaskResultRecord,
)

_METADATA_SECTIONS = ("Constraints", "Risks")


class ExecutionContext:
    """
    Per-session aggregate of plan context.

    Example:
        >>> context = ExecutionContext("Harden module X", cache)
        >>> context.set_analysis_result("## Risks\\n- Breaking callers")
        >>> context.risks
        ['Breaking callers']
    """

    def __init__(self, requirement: str, cache: TaskContextCache) -> None:
        self.original_requirement = requirement
        self.cache = cache
        self.analysis_result: str | None = None
        self.decisions: dict[str, str] = {}
        self.constraints: list[str] = []
        self.risks: list[str] = []
        self.task_results: dict[int, TaskResultRecord] = {}

        cache.cache_requirement(requirement)

    @property
    def session_id(self) -> str:
        return self.cache.session_id

    # =========================================================================
    # METADATA
    # =========================================================================

    def set_analysis_result(self, analysis_result: str | None) -> None:
        """Attach the decomposition rationale and extract its metadata."""
        self.analysis_result = analysis_result
        self._extract_metadata(analysis_result)
        self.cache.cache_analysis_result(analysis_result)

    def _extract_metadata(self, analysis_result: str | None) -> None:
        """Collect bullets under ``## Constraints`` and ``## Risks`` headings."""
        if not analysis_result:
            return

        section: str | None = None
        for raw in analysis_result.splitlines():
            line = raw.strip()
            if line.startswith("##"):
                section = line.lstrip("#").strip()
            elif line.startswith("-") and section in _METADATA_SECTIONS:
                target = self.constraints if section == "Constraints" else self.risks
                target.append(line[1:].strip())

        logger.info(
            f"Extracted {len(self.constraints)} constraints and "
            f"{len(self.risks)} risks from analysis"
        )

    def add_decision(self, decision: str, reasoning: str) -> None:
        self.decisions[decision] = reasoning

    def add_constraint(self, constraint: str) -> None:
        self.constraints.append(constraint)

    def add_risk(self, risk: str) -> None:
        self.risks.append(risk)

    # =========================================================================
    # TASK RESULTS
    # =========================================================================

    def record_task_result(
        self,
        task_id: int,
        description: str,
        output: str | None,
        success: bool,
    ) -> TaskResultRecord:
        """Record a task's outcome and write it through to the cache."""
        record = TaskResultRecord(
            task_id=task_id,
            description=description,
            output=output,
            success=success,
        )
        self.task_results[task_id] = record
        self.cache.cache_task_result(record)
        return record

    def get_task_result(self, task_id: int) -> TaskResultRecord | None:
        return self.task_results.get(task_id)

    def get_completed_task_results(self) -> list[TaskResultRecord]:
        return [r for r in self.task_results.values() if r.success]

    def cache_task_list(self, tasks: list[Task]) -> None:
        self.cache.cache_task_list(tasks)

    # =========================================================================
    # REPORTING
    # =========================================================================

    def get_session_context_summary(self) -> str:
        return self.cache.build_session_context_summary()

    def get_cache_stats(self) -> str:
        return self.cache.get_cache_stats()

    def generate_context_report(self) -> str:
        """Render requirement, constraints, risks, decisions and results."""
        lines = ["## Task Execution Context", "", "### Original Requirement", self.original_requirement, ""]

        if self.constraints:
            lines.append("### Constraints")
            lines.extend(f"- {c}" for c in self.constraints)
            lines.append("")

        if self.risks:
            lines.append("### Risks")
            lines.extend(f"- {r}" for r in self.risks)
            lines.append("")

        if self.decisions:
            lines.append("### Key Decisions")
            for decision, reasoning in self.decisions.items():
                lines.append(f"- {decision}")
                lines.append(f"  Reasoning: {reasoning}")
            lines.append("")

        if self.task_results:
            lines.append("### Completed Tasks")
            for task_id, result in sorted(self.task_results.items()):
                lines.append(f"- Task {task_id}: {result.description}")
                lines.append(f"  Status: {'SUCCESS' if result.success else 'FAILED'}")

        return "\n".join(lines)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def persist(self) -> None:
        """Write the context metadata to the cache."""
        self.cache.cache_execution_context(
            ExecutionContextRecord(
                original_requirement=self.original_requirement,
                analysis_result=self.analysis_result,
                decisions=dict(self.decisions),
                constraints=list(self.constraints),
                risks=list(self.risks),
            )
        )

    @classmethod
    def recover(cls, cache: TaskContextCache) -> "ExecutionContext | None":
        """
        Rebuild a context from the cache of an earlier session.

        Task results are restored for every task in the cached task list.

        Returns:
            The recovered context, or None when the session has no
            persisted metadata.
        """
        record = cache.get_cached_execution_context()
        if record is None:
            return None

        context = cls(record.original_requirement, cache)
        context.analysis_result = record.analysis_result
        context.decisions.update(record.decisions)
        context.constraints.extend(record.constraints)
        context.risks.extend(record.risks)

        for task in cache.get_cached_task_list():
            result = cache.get_cached_task_result(task.id)
            if result is not None:
                context.task_results[task.id] = result

        logger.info(f"Recovered execution context from cache (session: {cache.session_id})")
        return context
