"""Output formatting utilities for CLI commands."""

from __future__ import annotations

import json
import sys
from typing import Any, NoReturn

import rich_click as click

from stackweave.core.types import ExecutionPlan, ExecutionResult


def print_table(
    headers: list[str],
    rows: list[list[str]],
    widths: list[int] | None = None,
    separator_width: int = 70,
) -> None:
    """Print a formatted table with headers.

    Column widths default to the widest cell in each column.
    """
    if widths is None:
        widths = [max([len(h)] + [len(r[i]) for r in rows if i < len(r)]) for i, h in enumerate(headers)]

    fmt = " ".join(
        "{}" if i == len(widths) - 1 else f"{{:<{width}}}" for i, width in enumerate(widths)
    )

    click.echo(fmt.format(*headers))
    click.echo("-" * separator_width)
    for row in rows:
        padded = list(row) + [""] * (len(headers) - len(row))
        click.echo(fmt.format(*padded[: len(headers)]))


def output_json(data: Any, indent: int = 2) -> None:
    """Output data as formatted JSON."""
    click.echo(json.dumps(data, indent=indent, default=str))


def error_exit(message: str, code: int = 1) -> NoReturn:
    """Print error message and exit with code."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


def print_plan(plan: ExecutionPlan, estimate: float) -> None:
    metrics = plan.metrics
    click.echo(f"Plan {plan.id}: strategy={plan.strategy.value}")
    click.echo(
        f"  tasks={metrics.task_count} layers={len(plan.execution_layers)} "
        f"max_parallel={metrics.max_parallelization} "
        f"speedup={metrics.estimated_speedup:.2f} estimate={estimate:g}"
    )
    click.echo()
    rows = [
        [str(index), ", ".join(t.id for t in layer)]
        for index, layer in enumerate(plan.execution_layers)
    ]
    print_table(["LAYER", "TASKS"], rows)


def print_result(result: ExecutionResult) -> None:
    rows = []
    for task in result.tasks:
        rows.append(
            [
                task.id,
                task.state.value,
                str(task.retry_count),
                f"{task.duration:.1f}s" if task.duration is not None else "-",
                task.branch_name or "-",
            ]
        )
    print_table(["TASK", "STATE", "FAILURES", "DURATION", "BRANCH"], rows)

    click.echo()
    summary = (
        f"{result.status.value}: {result.completed} completed, "
        f"{result.failed} failed, {result.skipped} skipped "
        f"({result.duration:.1f}s, strategy={result.strategy.value})"
    )
    color = "green" if result.success else "red"
    click.secho(summary, fg=color, bold=True)

    if result.branches:
        click.echo("\nBranches:")
        for branch in result.branches:
            click.echo(f"  {branch.name} <- {branch.parent_branch_name} ({branch.commit_hash[:12]})")
    if result.pr_urls:
        click.echo("\nPull requests:")
        for url in result.pr_urls:
            click.echo(f"  {url}")
    if result.warnings:
        click.echo("\nWarnings:")
        for warning in result.warnings:
            click.secho(f"  {warning}", fg="yellow")
