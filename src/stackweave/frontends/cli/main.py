"""CLI entry point."""

from __future__ import annotations

import asyncio
import signal
from typing import Any

import rich_click as click

from stackweave.config import StackweaveConfig, load_config
from stackweave.core.dag.planner import ExecutionPlanner
from stackweave.core.errors import ExternalToolError, ValidationError
from stackweave.core.execution import ExecutionContext, ExecutionOrchestrator, LoggingObserver
from stackweave.core.executors import CommandTaskExecutor, MockTaskExecutor, TaskExecutor
from stackweave.core.logging_config import configure_logging
from stackweave.core.types import ExecutionMode, ExecutionResult, PlanStatus, Strategy, Task, VcsMode
from stackweave.core.vcs import CommandRunner, GitClient, GitSpiceClient, StackingEngine, WorktreeManager
from stackweave.frontends.cli.output import (
    error_exit,
    output_json,
    print_plan,
    print_result,
    print_table,
)
from stackweave.plan_file import load_plan

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running '--help' for more information."
click.rich_click.MAX_WIDTH = 100

EXIT_FAILED = 1
EXIT_INVALID = 2
EXIT_CANCELLED = 130

STRATEGY_CHOICES = [s.value for s in Strategy]
VCS_CHOICES = [m.value for m in VcsMode]


def _load_tasks(file: str) -> list[Task]:
    try:
        return load_plan(file)
    except ValidationError as e:
        error_exit(str(e), EXIT_INVALID)


# =========================================================================
# Root CLI
# =========================================================================
@click.group()
@click.version_option(package_name="stackweave")
@click.option("--verbose", "-v", count=True, help="-v for info logs, -vv for debug")
def cli(verbose: int) -> None:
    """stackweave - run a task DAG as a stack of branches.

    Tasks are layered by their dependencies and executed with as much
    concurrency as the graph allows. In **stacked** mode every task runs
    in its own git worktree and its commit becomes a branch stacked on
    its dependency's branch.

        stackweave plan plan.yaml       Show layers and chosen strategy

        stackweave validate plan.yaml   Check a plan for errors

        stackweave run plan.yaml        Execute a plan
    """
    level = {0: None, 1: "INFO"}.get(verbose, "DEBUG")
    configure_logging(level=level)


@cli.command("plan")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--strategy", "-s", type=click.Choice(STRATEGY_CHOICES), help="Requested strategy")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
def plan_cmd(file: str, strategy: str | None, json_output: bool) -> None:
    """Show the execution layers and strategy for a plan file."""
    tasks = _load_tasks(file)
    planner = ExecutionPlanner()
    try:
        plan = planner.create_plan(tasks, strategy=strategy)
    except ValidationError as e:
        error_exit(str(e), EXIT_INVALID)

    estimate = planner.estimate_execution_time(plan)
    if json_output:
        output_json({**plan.to_dict(), "estimated_duration": estimate})
    else:
        print_plan(plan, estimate)


@cli.command("validate")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
def validate_cmd(file: str, json_output: bool) -> None:
    """Check a plan file for errors and warnings."""
    tasks = _load_tasks(file)
    report = ExecutionPlanner().validate(tasks)

    if json_output:
        output_json(report.to_dict())
    else:
        rows = [["error", msg] for msg in report.errors] + [["warning", msg] for msg in report.warnings]
        if rows:
            print_table(["LEVEL", "MESSAGE"], rows)
        click.echo(f"{len(tasks)} task(s): {'valid' if report.valid else 'invalid'}")

    if not report.valid:
        raise SystemExit(EXIT_INVALID)


def build_executor(config: StackweaveConfig, mock: bool, git: GitClient) -> TaskExecutor:
    if mock:
        return MockTaskExecutor(write_files=True)
    if not config.agent_command:
        error_exit("No agent command configured; pass --agent-command or use --mock")
    return CommandTaskExecutor.from_string(
        config.agent_command, timeout=config.task_timeout, git=git
    )


def build_stacking(config: StackweaveConfig, git: GitClient, runner: CommandRunner) -> StackingEngine | None:
    if config.vcs is VcsMode.SIMPLE:
        return None
    spice = None
    if config.vcs is VcsMode.STACKED:
        spice = GitSpiceClient(runner=runner, binary=config.spice_binary, git_binary=config.git_binary)
    return StackingEngine(
        git=git,
        spice=spice,
        worktrees=WorktreeManager(
            git=git, root=config.worktree_root, branch_prefix=config.worktree_branch_prefix
        ),
        branch_prefix=config.branch_prefix,
    )


async def _execute(
    orchestrator: ExecutionOrchestrator,
    tasks: list[Task],
    context: ExecutionContext,
) -> ExecutionResult:
    loop = asyncio.get_running_loop()

    def on_interrupt() -> None:
        click.echo("\nCancelling...", err=True)
        loop.create_task(orchestrator.cancel("interrupted"))

    try:
        loop.add_signal_handler(signal.SIGINT, on_interrupt)
    except (NotImplementedError, RuntimeError):
        pass
    try:
        return await orchestrator.execute(tasks, context)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


@cli.command("run")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="Config file")
@click.option("--strategy", "-s", type=click.Choice(STRATEGY_CHOICES), help="Requested strategy")
@click.option("--vcs-mode", type=click.Choice(VCS_CHOICES), help="simple, worktree or stacked")
@click.option(
    "--repo", "-C", type=click.Path(exists=True, file_okay=False), default=".", help="Repository path"
)
@click.option("--trunk", help="Stack base branch (default: current branch)")
@click.option("--continue-on-error", is_flag=True, default=None, help="Keep going after failures")
@click.option("--max-retries", type=int, help="Failed attempts allowed per task")
@click.option("--max-concurrency", type=int, help="Max tasks running at once per layer")
@click.option("--agent-command", "-a", help='Agent command, e.g. \'claude -p "{prompt}"\'')
@click.option("--mock", is_flag=True, help="Use the scripted mock executor")
@click.option("--dry-run", is_flag=True, help="Ask the executor to plan only")
@click.option("--init-stack", is_flag=True, help="Initialize git-spice if needed")
@click.option("--submit", is_flag=True, help="Submit the stack as pull requests")
@click.option("--keep-worktrees", is_flag=True, help="Never remove worktrees")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
def run_cmd(
    file: str,
    config_path: str | None,
    strategy: str | None,
    vcs_mode: str | None,
    repo: str,
    trunk: str | None,
    continue_on_error: bool | None,
    max_retries: int | None,
    max_concurrency: int | None,
    agent_command: str | None,
    mock: bool,
    dry_run: bool,
    init_stack: bool,
    submit: bool,
    keep_worktrees: bool,
    json_output: bool,
) -> None:
    """Execute a plan file.

    Exit code is 0 when every task completed, 1 when any failed,
    2 for an invalid plan and 130 when interrupted.
    """
    overrides: dict[str, Any] = {
        "strategy": strategy,
        "vcs_mode": vcs_mode,
        "trunk": trunk,
        "continue_on_error": continue_on_error,
        "max_retries": max_retries,
        "max_concurrency": max_concurrency,
        "agent_command": agent_command,
    }
    try:
        config = load_config(config_path, **overrides)
    except (ValueError, OSError) as e:
        error_exit(f"Invalid configuration: {e}", EXIT_INVALID)

    tasks = _load_tasks(file)
    runner = CommandRunner()
    git = GitClient(runner=runner, binary=config.git_binary)
    orchestrator = ExecutionOrchestrator(
        executor=build_executor(config, mock, git),
        stacking=build_stacking(config, git, runner),
        planner=ExecutionPlanner(max_retries=config.max_retries),
        observers=[LoggingObserver()],
    )
    context = ExecutionContext(
        cwd=repo,
        strategy=config.requested_strategy,
        vcs_mode=config.vcs,
        mode=ExecutionMode.PLAN if dry_run else ExecutionMode.EXECUTE,
        continue_on_error=config.continue_on_error,
        max_retries=config.max_retries,
        trunk=config.trunk,
        cleanup_on_success=config.cleanup_on_success and not keep_worktrees,
        cleanup_on_failure=config.cleanup_on_failure and not keep_worktrees,
        init_stack=init_stack,
        submit_stack=submit,
        draft=config.draft,
        max_concurrency=config.max_concurrency,
    )

    try:
        result = asyncio.run(_execute(orchestrator, tasks, context))
    except ValidationError as e:
        error_exit(str(e), EXIT_INVALID)
    except ExternalToolError as e:
        error_exit(str(e), EXIT_FAILED)

    if json_output:
        output_json(result.to_dict())
    else:
        print_result(result)

    if result.status is PlanStatus.CANCELLED:
        raise SystemExit(EXIT_CANCELLED)
    if result.status is PlanStatus.FAILED:
        raise SystemExit(EXIT_FAILED)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
