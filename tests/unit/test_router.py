"""Unit tests for keyword-based task routing."""

import pytest

from taskloop.execution.router import (
    DEFAULT_DECISION,
    ExecutionType,
    RouteDecision,
    RouteRule,
    TaskRouter,
    get_cli_command,
    get_execution_type,
    get_local_tool,
    get_remote_tool,
    get_role_name,
    get_routing_explanation,
    get_target_name,
    requires_external_tools,
    requires_local_tools,
    route,
)


class TestRoute:
    """Tests for the built-in rule list."""

    def test_compile_routes_to_local_tool(self) -> None:
        """Test 'compile the project' goes to the compile tool."""
        decision = route("compile the project")

        assert decision == RouteDecision.TOOL_COMPILE
        assert get_execution_type(decision) == ExecutionType.LOCAL_TOOL
        assert get_local_tool(decision) == "compile"

    def test_design_routes_to_planner(self) -> None:
        """Test 'design the schema' goes to the planner role."""
        decision = route("design the schema")

        assert decision == RouteDecision.LLM_PLANNER
        assert get_execution_type(decision) == ExecutionType.ROLE
        assert get_role_name(decision) == "planner"

    @pytest.mark.parametrize(
        ("description", "expected"),
        [
            ("Implement the parser", RouteDecision.LLM_CODER),
            ("Review the patch", RouteDecision.LLM_REVIEWER),
            ("Identify memory leaks", RouteDecision.LLM_ANALYZER),
            ("Build the release artifacts", RouteDecision.TOOL_COMPILE),
            ("Write unit tests for the parser", RouteDecision.TOOL_TEST),
            ("Run static analysis on the module", RouteDecision.TOOL_ANALYZE),
            ("Run lint", RouteDecision.TOOL_ANALYZE),
            ("编译项目", RouteDecision.TOOL_COMPILE),
            ("设计数据库", RouteDecision.LLM_PLANNER),
            ("静态分析代码", RouteDecision.TOOL_ANALYZE),
        ],
    )
    def test_keyword_groups(self, description: str, expected: RouteDecision) -> None:
        assert route(description) == expected

    def test_case_insensitive(self) -> None:
        assert route("COMPILE everything") == RouteDecision.TOOL_COMPILE

    def test_first_match_wins(self) -> None:
        """Test rule order decides between matching groups."""
        assert route("Design and implement the API") == RouteDecision.LLM_PLANNER

    def test_default(self) -> None:
        """Test unmatched descriptions go to the analyzer role."""
        assert route("Harden module X") == DEFAULT_DECISION == RouteDecision.LLM_ANALYZER

    def test_deterministic(self) -> None:
        router = TaskRouter()
        descriptions = ["compile", "design", "whatever"]

        assert router.route_batch(descriptions) == router.route_batch(descriptions)


class TestExtraRules:
    """Tests for caller-supplied rules."""

    def test_extra_rules_checked_first(self) -> None:
        """Test extra rules reach the remote-tool and command strategies."""
        router = TaskRouter(
            [
                RouteRule(RouteDecision.MCP_SEARCH, ("search the web",)),
                RouteRule(RouteDecision.CMD_REVIEW, ("/review",)),
            ]
        )

        search = router.route("Search the web for similar CVEs")
        review = router.route("Run /review on the diff")

        assert get_execution_type(search) == ExecutionType.MCP_TOOL
        assert get_remote_tool(search) == "web_search"
        assert get_execution_type(review) == ExecutionType.COMMAND
        assert get_cli_command(review) == "/review"

    def test_builtin_rules_still_apply(self) -> None:
        router = TaskRouter([RouteRule(RouteDecision.MCP_FILE_READ, ("read file",))])

        assert router.route("compile it") == RouteDecision.TOOL_COMPILE


class TestAccessors:
    """Tests for decision accessors."""

    @pytest.mark.parametrize("decision", list(RouteDecision))
    def test_every_decision_is_mapped(self, decision: RouteDecision) -> None:
        """Test each decision has a strategy, target and rationale."""
        assert isinstance(get_execution_type(decision), ExecutionType)
        assert get_target_name(decision)
        assert get_routing_explanation(decision).startswith("Routing to")

    def test_target_names(self) -> None:
        assert get_target_name(RouteDecision.LLM_CODER) == "coder"
        assert get_target_name(RouteDecision.TOOL_TEST) == "test"
        assert get_target_name(RouteDecision.MCP_FILE_READ) == "file_read"
        assert get_target_name(RouteDecision.CMD_ANALYZE) == "/analyze"

    def test_accessors_return_none_for_other_strategies(self) -> None:
        assert get_role_name(RouteDecision.TOOL_COMPILE) is None
        assert get_local_tool(RouteDecision.LLM_PLANNER) is None

    def test_tool_predicates(self) -> None:
        assert requires_local_tools(RouteDecision.TOOL_TEST)
        assert not requires_local_tools(RouteDecision.LLM_CODER)
        assert requires_external_tools(RouteDecision.MCP_SEARCH)
        assert not requires_external_tools(RouteDecision.CMD_REVIEW)
