"""Unit tests for the command-line interface."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from taskloop import __version__
from taskloop.cli.main import app

runner = CliRunner()


class TestInfoCommands:
    """Tests for commands that do not execute plans."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_route(self) -> None:
        result = runner.invoke(app, ["route", "compile the project"])

        assert result.exit_code == 0
        assert "tool_compile" in result.output
        assert "local_tool" in result.output
        assert "Routing to local compile tool" in result.output

    def test_classify_transient(self) -> None:
        result = runner.invoke(app, ["classify", "connection timeout"])

        assert result.exit_code == 0
        assert "TRANSIENT" in result.output
        assert "Max retries: 3" in result.output

    def test_classify_permanent(self) -> None:
        result = runner.invoke(app, ["classify", "404 resource not found"])

        assert result.exit_code == 0
        assert "PERMANENT" in result.output
        assert "Max retries: 0" in result.output

    def test_plan(self) -> None:
        result = runner.invoke(
            app,
            ["plan", "Harden module X\n- Design the checks\n- Implement them (after 1)"],
        )

        assert result.exit_code == 0
        assert "Design the checks" in result.output
        assert "Critical path: 1 -> 2" in result.output

    def test_plan_rejects_cycle(self) -> None:
        result = runner.invoke(app, ["plan", "- A (after 2)\n- B (after 1)"])

        assert result.exit_code == 1
        assert "Circular dependency" in result.output

    def test_plan_accepts_bullet_first_outline(self) -> None:
        """Test an outline starting with a dash is read as the requirement."""
        result = runner.invoke(app, ["plan", "- Implement parser (after 2)\n- Design grammar"])

        assert result.exit_code == 0
        assert "No such option" not in result.output
        assert "Critical path: 2 -> 1" in result.output

    def test_plan_from_file(self, tmp_path: Path) -> None:
        requirement_file = tmp_path / "requirement.md"
        requirement_file.write_text("- Design the schema\n- Compile the project\n", encoding="utf-8")

        result = runner.invoke(app, ["plan", str(requirement_file)])

        assert result.exit_code == 0
        assert "Loaded requirement from" in result.output
        assert "Compile the project" in result.output


class TestRunCommands:
    """Tests for plan execution through the CLI."""

    def test_run(self) -> None:
        result = runner.invoke(
            app,
            ["run", "--memory", "- Design the schema\n- Compile the project"],
        )

        assert result.exit_code == 0
        assert "Completed: 2/2" in result.output
        assert "Plan completed" in result.output

    def test_run_blank_requirement(self) -> None:
        result = runner.invoke(app, ["run", "--memory", "   "])

        assert result.exit_code == 1
        assert "no subtasks" in result.output

    @pytest.mark.parametrize("command", ["resume", "cache-stats"])
    def test_session_commands_with_sql_cache(
        self,
        command: str,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test session commands read from the configured database."""
        from taskloop.core.config import clear_settings_cache

        monkeypatch.setenv("TASKLOOP_CACHE_BACKEND", "sql")
        monkeypatch.setenv("TASKLOOP_CACHE_URL", f"sqlite:///{tmp_path / 'ctx.db'}")
        clear_settings_cache()

        result = runner.invoke(app, [command, "unknown-session"])

        if command == "resume":
            assert result.exit_code == 1
            assert "No cached plan" in result.output
        else:
            assert result.exit_code == 0
            assert "Requirement: not cached" in result.output

    def test_run_then_resume_completed_plan(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a finished plan can be reopened from the database."""
        from taskloop.core.config import clear_settings_cache

        monkeypatch.setenv("TASKLOOP_CACHE_BACKEND", "sql")
        monkeypatch.setenv("TASKLOOP_CACHE_URL", f"sqlite:///{tmp_path / 'ctx.db'}")
        clear_settings_cache()

        first = runner.invoke(app, ["run", "Review the parser"])
        assert first.exit_code == 0

        session_line = next(
            line for line in first.output.splitlines() if line.startswith("Session: ")
        )
        session_id = session_line.removeprefix("Session: ").strip()

        stats = runner.invoke(app, ["cache-stats", session_id])
        assert "completed: 1" in stats.output

        resumed = runner.invoke(app, ["resume", session_id])
        assert resumed.exit_code == 0
        assert "Completed: 1/1" in resumed.output
