"""
Task router for taskloop.

Decides how a task is executed from its description alone: delegate to a
role-based natural-language executor, run a local tool, call a remote (MCP)
tool, or invoke a CLI command. Routing performs no execution itself.
"""

from dataclasses import dataclass
from enum import Enum

from loguru import logger

# =============================================================================
# DECISIONS
# =============================================================================


class ExecutionType(str, Enum):
    """Coarse execution strategy."""

    ROLE = "role"  # Natural-language executor with a role hint
    LOCAL_TOOL = "local_tool"  # compile, test, static analysis
    MCP_TOOL = "mcp_tool"  # Remote, out-of-process tool
    COMMAND = "command"  # CLI-style command


class RouteDecision(str, Enum):
    """Concrete routing target."""

    LLM_PLANNER = "llm_planner"
    LLM_CODER = "llm_coder"
    LLM_REVIEWER = "llm_reviewer"
    LLM_ANALYZER = "llm_analyzer"
    TOOL_COMPILE = "tool_compile"
    TOOL_TEST = "tool_test"
    TOOL_ANALYZE = "tool_analyze"
    MCP_SEARCH = "mcp_search"
    MCP_FILE_READ = "mcp_file_read"
    CMD_ANALYZE = "cmd_analyze"
    CMD_REVIEW = "cmd_review"


_EXECUTION_TYPES: dict[RouteDecision, ExecutionType] = {
    RouteDecision.LLM_PLANNER: ExecutionType.ROLE,
    RouteDecision.LLM_CODER: ExecutionType.ROLE,
    RouteDecision.LLM_REVIEWER: ExecutionType.ROLE,
    RouteDecision.LLM_ANALYZER: ExecutionType.ROLE,
    RouteDecision.TOOL_COMPILE: ExecutionType.LOCAL_TOOL,
    RouteDecision.TOOL_TEST: ExecutionType.LOCAL_TOOL,
    RouteDecision.TOOL_ANALYZE: ExecutionType.LOCAL_TOOL,
    RouteDecision.MCP_SEARCH: ExecutionType.MCP_TOOL,
    RouteDecision.MCP_FILE_READ: ExecutionType.MCP_TOOL,
    RouteDecision.CMD_ANALYZE: ExecutionType.COMMAND,
    RouteDecision.CMD_REVIEW: ExecutionType.COMMAND,
}

_ROLE_NAMES: dict[RouteDecision, str] = {
    RouteDecision.LLM_PLANNER: "planner",
    RouteDecision.LLM_CODER: "coder",
    RouteDecision.LLM_REVIEWER: "reviewer",
    RouteDecision.LLM_ANALYZER: "analyzer",
}

_LOCAL_TOOLS: dict[RouteDecision, str] = {
    RouteDecision.TOOL_COMPILE: "compile",
    RouteDecision.TOOL_TEST: "test",
    RouteDecision.TOOL_ANALYZE: "analyze",
}

_REMOTE_TOOLS: dict[RouteDecision, str] = {
    RouteDecision.MCP_SEARCH: "web_search",
    RouteDecision.MCP_FILE_READ: "file_read",
}

_CLI_COMMANDS: dict[RouteDecision, str] = {
    RouteDecision.CMD_ANALYZE: "/analyze",
    RouteDecision.CMD_REVIEW: "/review",
}

_EXPLANATIONS: dict[RouteDecision, str] = {
    RouteDecision.LLM_PLANNER: "Routing to Planner role (LLM) for design/planning",
    RouteDecision.LLM_CODER: "Routing to Coder role (LLM) for implementation",
    RouteDecision.LLM_REVIEWER: "Routing to Reviewer role (LLM) for code review",
    RouteDecision.LLM_ANALYZER: "Routing to Analyzer role (LLM) for analysis",
    RouteDecision.TOOL_COMPILE: "Routing to local compile tool",
    RouteDecision.TOOL_TEST: "Routing to local test tool",
    RouteDecision.TOOL_ANALYZE: "Routing to local analysis tool",
    RouteDecision.MCP_SEARCH: "Routing to MCP web search tool",
    RouteDecision.MCP_FILE_READ: "Routing to MCP file read tool",
    RouteDecision.CMD_ANALYZE: "Routing to /analyze command",
    RouteDecision.CMD_REVIEW: "Routing to /review command",
}


# =============================================================================
# RULES
# =============================================================================


@dataclass(frozen=True)
class RouteRule:
    """Keyword group mapped to a decision; matches on any keyword."""

    decision: RouteDecision
    keywords: tuple[str, ...]

    def matches(self, text: str) -> bool:
        return any(kw in text for kw in self.keywords)


DEFAULT_RULES: tuple[RouteRule, ...] = (
    RouteRule(
        RouteDecision.LLM_PLANNER,
        ("design", "plan", "architect", "strategy", "设计", "规划", "架构"),
    ),
    RouteRule(
        RouteDecision.LLM_CODER,
        ("implement", "write code", "develop", "create", "编写", "实现", "开发"),
    ),
    RouteRule(
        RouteDecision.LLM_REVIEWER,
        ("review", "verify", "check", "audit", "审查", "验证"),
    ),
    # Ahead of the analyzer rule, which would otherwise shadow it
    RouteRule(
        RouteDecision.TOOL_ANALYZE,
        ("static analy", "lint", "静态分析"),
    ),
    RouteRule(
        RouteDecision.LLM_ANALYZER,
        ("analyze", "identify", "find", "detect", "分析", "识别"),
    ),
    RouteRule(
        RouteDecision.TOOL_COMPILE,
        ("compile", "build", "编译", "构建"),
    ),
    RouteRule(
        RouteDecision.TOOL_TEST,
        ("test", "测试"),
    ),
)

DEFAULT_DECISION = RouteDecision.LLM_ANALYZER


# =============================================================================
# TASK ROUTER
# =============================================================================


class TaskRouter:
    """
    Route task descriptions to execution strategies.

    Rules are evaluated in order and the first match wins; caller-supplied
    rules are evaluated before the built-in ones. Descriptions that match
    nothing go to the analyzer role.

    Example:
        >>> router = TaskRouter()
        >>> router.route("Compile the project")
        <RouteDecision.TOOL_COMPILE: 'tool_compile'>
        >>> router = TaskRouter([RouteRule(RouteDecision.MCP_SEARCH, ("search the web",))])
        >>> get_execution_type(router.route("Search the web for CVEs"))
        <ExecutionType.MCP_TOOL: 'mcp_tool'>
    """

    def __init__(self, extra_rules: list[RouteRule] | None = None) -> None:
        """
        Initialize task router.

        Args:
            extra_rules: Rules checked before the built-in rules.
        """
        self.rules: tuple[RouteRule, ...] = tuple(extra_rules or ()) + DEFAULT_RULES

    def route(self, description: str) -> RouteDecision:
        """
        Determine the routing decision for a task description.

        Args:
            description: Task description.

        Returns:
            The first matching rule's decision, or the default.
        """
        text = description.lower()
        for rule in self.rules:
            if rule.matches(text):
                logger.debug(f"Routed to {rule.decision.value} (keyword match)")
                return rule.decision
        return DEFAULT_DECISION

    def route_batch(self, descriptions: list[str]) -> list[RouteDecision]:
        """Route several descriptions."""
        return [self.route(d) for d in descriptions]


_default_router = TaskRouter()


def route(description: str) -> RouteDecision:
    """Route a description with the built-in rules."""
    return _default_router.route(description)


# =============================================================================
# ACCESSORS
# =============================================================================


def get_execution_type(decision: RouteDecision) -> ExecutionType:
    return _EXECUTION_TYPES[decision]


def get_role_name(decision: RouteDecision) -> str | None:
    """Role hint for ROLE decisions, None otherwise."""
    return _ROLE_NAMES.get(decision)


def get_local_tool(decision: RouteDecision) -> str | None:
    return _LOCAL_TOOLS.get(decision)


def get_remote_tool(decision: RouteDecision) -> str | None:
    return _REMOTE_TOOLS.get(decision)


def get_cli_command(decision: RouteDecision) -> str | None:
    return _CLI_COMMANDS.get(decision)


def get_target_name(decision: RouteDecision) -> str:
    """Role, tool or command name the decision resolves to."""
    return (
        get_role_name(decision)
        or get_local_tool(decision)
        or get_remote_tool(decision)
        or get_cli_command(decision)
        or decision.value
    )


def get_routing_explanation(decision: RouteDecision) -> str:
    """One-line human-readable routing rationale."""
    return _EXPLANATIONS[decision]


def requires_local_tools(decision: RouteDecision) -> bool:
    return get_execution_type(decision) == ExecutionType.LOCAL_TOOL


def requires_external_tools(decision: RouteDecision) -> bool:
    return get_execution_type(decision) == ExecutionType.MCP_TOOL
