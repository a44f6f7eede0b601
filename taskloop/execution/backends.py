"""
Execution backends for routed tasks.

Each routing strategy maps onto one backend method. Backends return result
text on success and raise on failure; the exception's string form is what
the error classifier sees.
"""

from typing import Protocol, runtime_checkable

from loguru import logger

from taskloop.decomposition.models import Task
from taskloop.execution.router import (
    ExecutionType,
    RouteDecision,
    get_cli_command,
    get_execution_type,
    get_local_tool,
    get_remote_tool,
    get_role_name,
)


@runtime_checkable
class ExecutionBackend(Protocol):
    """Blocking request/response interface to the execution strategies.

    Methods return result text or raise, typically ExecutionError.
    """

    def execute_role(self, role: str, task_description: str, context: str) -> str: ...

    def execute_local_tool(self, tool_name: str, task_description: str) -> str: ...

    def execute_remote_tool(self, tool_name: str, task_description: str) -> str: ...

    def execute_command(self, command: str, task_description: str) -> str: ...


def dispatch(
    backend: ExecutionBackend,
    decision: RouteDecision,
    task: Task,
    context: str,
) -> str:
    """
    Run a task through the backend method matching its routing decision.

    Args:
        backend: Execution backend.
        decision: Routing decision for the task.
        task: Task being executed.
        context: Context text for role-based execution.

    Returns:
        Result text from the backend.
    """
    execution_type = get_execution_type(decision)

    if execution_type == ExecutionType.ROLE:
        role = get_role_name(decision) or "analyzer"
        return backend.execute_role(role, task.description, context)

    if execution_type == ExecutionType.LOCAL_TOOL:
        tool = get_local_tool(decision) or decision.value
        logger.info(f"Executing local tool: {tool}")
        return backend.execute_local_tool(tool, task.description)

    if execution_type == ExecutionType.MCP_TOOL:
        tool = get_remote_tool(decision) or decision.value
        logger.info(f"Executing MCP tool: {tool}")
        return backend.execute_remote_tool(tool, task.description)

    command = get_cli_command(decision) or decision.value
    logger.info(f"Executing command: {command}")
    return backend.execute_command(command, task.description)


class PlaceholderBackend:
    """
    Backend that acknowledges every call without doing any work.

    Used when no concrete integration is configured, so that plans can be
    walked end to end.
    """

    def execute_role(self, role: str, task_description: str, context: str) -> str:
        return f"[{role}] {task_description}"

    def execute_local_tool(self, tool_name: str, task_description: str) -> str:
        return f"Local tool '{tool_name}' executed"

    def execute_remote_tool(self, tool_name: str, task_description: str) -> str:
        return f"MCP tool '{tool_name}' executed"

    def execute_command(self, command: str, task_description: str) -> str:
        return f"Command '{command}' executed"
