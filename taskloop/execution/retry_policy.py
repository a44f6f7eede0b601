"""Per-task retry bookkeeping with a fixed synchronous backoff."""

import time
from collections.abc import Callable

from loguru import logger

from taskloop.execution.error_classifier import classify_error, get_max_retries

DEFAULT_RETRY_DELAY_MS = 1000


class TaskRetryPolicy:
    """
    Track failures per task and decide between retry and skip.

    The retry budget comes from the classification of the failure reason:
    a task is retried while its retry counter is below the budget and
    marked skipped once the budget is spent.

    Example:
        >>> policy = TaskRetryPolicy(retry_delay_ms=0)
        >>> policy.record_failure(1, "connection timeout")
        True
        >>> policy.record_failure(2, "404 not found")
        False
        >>> policy.is_skipped(2)
        True
    """

    def __init__(
        self,
        retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize retry policy.

        Args:
            retry_delay_ms: Delay between retries in milliseconds.
            sleep: Blocking sleep function, replaceable in tests.
        """
        self.retry_delay_ms = retry_delay_ms
        self._sleep = sleep
        self._retry_counts: dict[int, int] = {}
        self._failure_reasons: dict[int, str] = {}
        self._skipped: dict[int, None] = {}

    def record_failure(self, task_id: int, reason: str) -> bool:
        """
        Record a task failure.

        Args:
            task_id: Task identifier.
            reason: Failure message.

        Returns:
            True if the task should be retried, False if it is now skipped.
        """
        current = self._retry_counts.get(task_id, 0)
        budget = get_max_retries(classify_error(reason))

        logger.warning(f"Task {task_id} failed (attempt {current + 1}): {reason}")
        self._failure_reasons[task_id] = reason

        if current < budget:
            self._retry_counts[task_id] = current + 1
            logger.info(f"Will retry task {task_id} after {self.retry_delay_ms}ms")
            return True

        self._skipped[task_id] = None
        logger.warning(f"Task {task_id} exhausted its retry budget ({budget})")
        return False

    def record_success(self, task_id: int) -> None:
        """Clear retry state for a task that succeeded."""
        self._retry_counts.pop(task_id, None)
        self._failure_reasons.pop(task_id, None)
        self._skipped.pop(task_id, None)
        logger.debug(f"Task {task_id} executed successfully, retry state cleared")

    def mark_skipped(self, task_id: int, reason: str) -> None:
        """Mark a task skipped with the given reason."""
        self._skipped[task_id] = None
        self._failure_reasons[task_id] = reason

    def pardon(self, task_id: int) -> None:
        """Lift the skipped flag so an operator-approved retry can run."""
        self._skipped.pop(task_id, None)

    def is_skipped(self, task_id: int) -> bool:
        return task_id in self._skipped

    def get_skipped_tasks(self) -> list[int]:
        """Skipped task IDs in the order they were skipped."""
        return list(self._skipped)

    def get_failure_reason(self, task_id: int) -> str:
        return self._failure_reasons.get(task_id, "Unknown reason")

    def get_retry_count(self, task_id: int) -> int:
        return self._retry_counts.get(task_id, 0)

    def wait_before_retry(self) -> None:
        """Block the caller for the configured backoff."""
        if self.retry_delay_ms > 0:
            self._sleep(self.retry_delay_ms / 1000)

    def reset(self) -> None:
        """Forget all retry state."""
        self._retry_counts.clear()
        self._failure_reasons.clear()
        self._skipped.clear()
        logger.debug("Retry state reset")

    def get_retry_statistics(self) -> str:
        """Summarize skipped tasks and recorded failure reasons."""
        if not self._skipped and not self._failure_reasons:
            return "All tasks executed successfully"

        lines = []
        if self._skipped:
            lines.append("Skipped tasks: " + ", ".join(str(t) for t in self._skipped))
        if self._failure_reasons:
            lines.append("Failure reasons:")
            lines.extend(
                f"  - Task {task_id}: {reason}"
                for task_id, reason in self._failure_reasons.items()
            )
        return "\n".join(lines)
