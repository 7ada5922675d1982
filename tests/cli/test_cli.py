"""Tests for the stackweave CLI."""

from __future__ import annotations

import importlib
import json

import pytest
from click.testing import CliRunner

from stackweave.core.types import ExecutionResult, PlanStatus, Strategy
from stackweave.frontends.cli.main import (
    EXIT_CANCELLED,
    EXIT_INVALID,
    cli,
    plan_cmd,
    run_cmd,
    validate_cmd,
)

# The package re-exports the `main` function under the module's name
cli_main = importlib.import_module("stackweave.frontends.cli.main")

PLAN = """\
tasks:
  - id: a
  - id: b
  - id: c
  - id: d
    requires: [a, b, c]
"""

CYCLE = """\
tasks:
  - id: a
    requires: [b]
  - id: b
    requires: [a]
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    for name in ("STACKWEAVE_CONFIG", "STACKWEAVE_VCS_MODE", "STACKWEAVE_AGENT_COMMAND"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    # Handlers bound to one invocation's stderr would outlive it
    monkeypatch.setattr(cli_main, "configure_logging", lambda **kwargs: None)
    (tmp_path / "plan.yaml").write_text(PLAN)
    (tmp_path / "cycle.yaml").write_text(CYCLE)
    return tmp_path


class TestCommandDefinitions:
    """Tests for command wiring."""

    def test_commands_registered(self):
        assert set(cli.commands) == {"plan", "validate", "run"}

    def test_run_options(self):
        names = {p.name for p in run_cmd.params}
        assert {
            "strategy",
            "vcs_mode",
            "repo",
            "continue_on_error",
            "max_retries",
            "agent_command",
            "mock",
            "init_stack",
            "submit",
            "json_output",
        } <= names

    def test_plan_and_validate_take_file(self):
        assert plan_cmd.params[0].name == "file"
        assert validate_cmd.params[0].name == "file"


class TestPlanCommand:
    """Tests for `stackweave plan`."""

    def test_plan_json(self, runner, workspace):
        result = runner.invoke(cli, ["plan", "plan.yaml", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["strategy"] == "parallel"
        assert data["layers"] == [["a", "b", "c"], ["d"]]
        assert data["estimated_duration"] == 2

    def test_plan_text(self, runner, workspace):
        result = runner.invoke(cli, ["plan", "plan.yaml", "--strategy", "serial"])
        assert result.exit_code == 0, result.output
        assert "strategy=serial" in result.output

    def test_plan_cycle_is_invalid(self, runner, workspace):
        result = runner.invoke(cli, ["plan", "cycle.yaml"])
        assert result.exit_code == EXIT_INVALID


class TestValidateCommand:
    """Tests for `stackweave validate`."""

    def test_valid(self, runner, workspace):
        result = runner.invoke(cli, ["validate", "plan.yaml"])
        assert result.exit_code == 0
        assert "valid" in result.output

    def test_invalid_json(self, runner, workspace):
        result = runner.invoke(cli, ["validate", "cycle.yaml", "--json"])
        assert result.exit_code == EXIT_INVALID
        assert json.loads(result.output)["valid"] is False


class TestRunCommand:
    """Tests for `stackweave run`."""

    def test_mock_run(self, runner, workspace):
        result = runner.invoke(cli, ["run", "plan.yaml", "--mock", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["status"] == "completed"
        assert data["completed"] == 4
        assert (workspace / "d.md").exists()

    def test_requires_agent_command(self, runner, workspace):
        result = runner.invoke(cli, ["run", "plan.yaml"])
        assert result.exit_code == 1
        assert "agent command" in result.output

    def test_failing_agent_exits_one(self, runner, workspace):
        result = runner.invoke(
            cli, ["run", "plan.yaml", "--agent-command", "false", "--max-retries", "0"]
        )
        assert result.exit_code == 1
        assert "failed" in result.output

    def test_dry_run_spawns_nothing(self, runner, workspace):
        result = runner.invoke(
            cli, ["run", "plan.yaml", "--agent-command", "stackweave-missing-agent", "--dry-run"]
        )
        assert result.exit_code == 0, result.output

    def test_invalid_plan_file_exits_two(self, runner, workspace):
        (workspace / "bad.yaml").write_text("tasks:\n  - id: a\n    unknown: 1\n")
        result = runner.invoke(cli, ["run", "bad.yaml", "--mock"])
        assert result.exit_code == EXIT_INVALID
        assert "unknown" in result.output

    def test_cancelled_run_exits_130(self, runner, workspace, monkeypatch):
        async def cancelled(orchestrator, tasks, context):
            return ExecutionResult(plan_id="p", strategy=Strategy.PARALLEL, status=PlanStatus.CANCELLED)

        monkeypatch.setattr(cli_main, "_execute", cancelled)
        result = runner.invoke(cli, ["run", "plan.yaml", "--mock"])
        assert result.exit_code == EXIT_CANCELLED
        assert "cancelled" in result.output
