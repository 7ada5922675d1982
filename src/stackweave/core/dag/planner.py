"""Execution planner: layers a task graph and picks a strategy.

Strategy rules, checked in order:

1. invalid graph                                   -> serial
2. a single task                                   -> serial
3. max parallelization of 1 (a chain)              -> serial
4. estimated speedup <= 1.2                        -> serial
5. max parallelization >= 3 and speedup >= 2       -> parallel
6. anything else                                   -> hybrid

A requested strategy is honored when the plan shape allows it and
silently downgraded to serial otherwise.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from stackweave.core.dag.graph import DependencyGraph
from stackweave.core.errors import ValidationError
from stackweave.core.run_logging import generate_run_id, log_info
from stackweave.core.types import (
    ExecutionPlan,
    ExecutionTask,
    PlanMetrics,
    Strategy,
    Task,
)

logger = logging.getLogger(__name__)

SERIAL_SPEEDUP_THRESHOLD = 1.2
PARALLEL_MIN_WIDTH = 3
PARALLEL_MIN_SPEEDUP = 2.0

DEFAULT_MAX_RETRIES = 2


@dataclass
class ValidationReport:
    """Result of validating a task list without building a plan.

    Errors make the plan unrunnable; warnings do not.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    cycle: list[str] | None = None

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, object]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "cycle": self.cycle,
        }


def compute_metrics(graph: DependencyGraph, layers: Sequence[Sequence[Task]]) -> PlanMetrics:
    total_cost = sum(t.cost for t in graph.tasks)
    _, critical_cost = graph.critical_path()
    return PlanMetrics(
        task_count=len(graph),
        layer_count=len(layers),
        max_parallelization=max((len(layer) for layer in layers), default=0),
        total_cost=total_cost,
        critical_path_cost=critical_cost,
        estimated_speedup=total_cost / critical_cost if critical_cost > 0 else 1.0,
    )


def _coerce_strategy(value: Strategy | str | None) -> Strategy | None:
    if value is None or isinstance(value, Strategy):
        return value
    return Strategy(value)


class ExecutionPlanner:
    """Builds ``ExecutionPlan`` objects from task lists.

    Example:
        >>> planner = ExecutionPlanner()
        >>> plan = planner.create_plan(tasks)
        >>> plan.strategy, [[t.id for t in layer] for layer in plan.execution_layers]
        (<Strategy.HYBRID: 'hybrid'>, [['a'], ['b', 'c'], ['d']])
    """

    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self.max_retries = max_retries

    def build_layers(self, tasks: Sequence[Task]) -> list[list[Task]]:
        """Dependency layers for ``tasks``.

        Raises:
            ValidationError: Unknown dependencies or duplicate ids.
            CycleDetected: The graph has a cycle.
        """
        return DependencyGraph(tasks).layers()

    def validate(self, tasks: Sequence[Task]) -> ValidationReport:
        """Check a task list without raising.

        Errors: duplicate ids, unknown dependencies, cycles. Warnings:
        tasks that may run concurrently yet declare the same files, and
        tasks unconnected to the rest of a multi-task plan.
        """
        graph = DependencyGraph(tasks)
        report = ValidationReport(errors=graph.validate())
        if report.errors:
            return report

        cycle = graph.find_cycle()
        if cycle:
            report.cycle = cycle
            report.errors.append(f"Cycle detected: {' -> '.join(cycle + cycle[:1])}")
            return report

        for layer in graph.layers():
            owners: dict[str, str] = {}
            for task in layer:
                for path in dict.fromkeys(task.touches + task.produces):
                    if path in owners:
                        report.warnings.append(
                            f"Tasks '{owners[path]}' and '{task.id}' may run concurrently "
                            f"and both modify '{path}'"
                        )
                    else:
                        owners[path] = task.id

        if len(graph) > 1:
            for task in graph.tasks:
                if not task.requires and not graph.dependents(task.id):
                    report.warnings.append(f"Task '{task.id}' is not connected to any other task")

        return report

    def determine_strategy(
        self,
        tasks: Sequence[Task],
        requested: Strategy | str | None = None,
    ) -> Strategy:
        """Pick the strategy for a task list.

        Never raises for an invalid graph; that case is serial.
        """
        requested = _coerce_strategy(requested)
        graph = DependencyGraph(tasks)
        try:
            metrics = compute_metrics(graph, graph.layers())
        except ValidationError:
            return Strategy.SERIAL

        if requested is not None:
            if self._is_compatible(requested, metrics):
                return requested
            logger.debug(
                "requested strategy %s incompatible with plan shape "
                "(tasks=%d, max_parallelization=%d); using serial",
                requested.value,
                metrics.task_count,
                metrics.max_parallelization,
            )
            return Strategy.SERIAL

        return self._select(metrics)

    @staticmethod
    def _is_compatible(strategy: Strategy, metrics: PlanMetrics) -> bool:
        if strategy is Strategy.SERIAL:
            return True
        if strategy is Strategy.WORKTREE:
            return metrics.task_count > 0
        return metrics.task_count > 1 and metrics.max_parallelization > 1

    @staticmethod
    def _select(metrics: PlanMetrics) -> Strategy:
        if metrics.task_count <= 1:
            return Strategy.SERIAL
        if metrics.max_parallelization == 1:
            return Strategy.SERIAL
        if metrics.estimated_speedup <= SERIAL_SPEEDUP_THRESHOLD:
            return Strategy.SERIAL
        if (
            metrics.max_parallelization >= PARALLEL_MIN_WIDTH
            and metrics.estimated_speedup >= PARALLEL_MIN_SPEEDUP
        ):
            return Strategy.PARALLEL
        return Strategy.HYBRID

    def create_plan(
        self,
        tasks: Sequence[Task],
        strategy: Strategy | str | None = None,
        max_retries: int | None = None,
        plan_id: str | None = None,
    ) -> ExecutionPlan:
        """Validate, layer and bind a plan to a strategy.

        Serial plans get one task per layer in topological order; every
        other strategy runs the dependency layers.

        Args:
            tasks: Tasks in declaration order.
            strategy: Requested strategy, honored if compatible.
            max_retries: Retries per task; defaults to the planner's.
            plan_id: Plan id; generated if omitted.

        Raises:
            ValidationError: The graph is malformed. Nothing has run yet.
            CycleDetected: The graph has a cycle.
        """
        graph = DependencyGraph(tasks)
        layers = graph.layers()
        metrics = compute_metrics(graph, layers)
        chosen = self.determine_strategy(tasks, strategy)

        retries = self.max_retries if max_retries is None else max_retries
        exec_tasks = {t.id: ExecutionTask(task=t, max_retries=retries) for t in tasks}

        if chosen is Strategy.SERIAL:
            execution_layers = [[exec_tasks[t.id]] for t in graph.topological_order()]
        else:
            execution_layers = [[exec_tasks[t.id] for t in layer] for layer in layers]

        plan = ExecutionPlan(
            id=plan_id or generate_run_id(),
            tasks=exec_tasks,
            execution_layers=execution_layers,
            strategy=chosen,
            metrics=metrics,
        )
        log_info(
            logger,
            plan.id,
            "plan_created",
            tasks=metrics.task_count,
            layers=len(execution_layers),
            strategy=chosen.value,
            speedup=f"{metrics.estimated_speedup:.2f}",
        )
        return plan

    def estimate_execution_time(self, plan: ExecutionPlan) -> float:
        """Cost-based duration estimate, for reporting only.

        Serial plans sum every task's cost; layered plans sum the most
        expensive task of each layer.
        """
        if plan.strategy is Strategy.SERIAL:
            return sum(t.cost for t in plan.tasks.values())
        return sum(max((t.cost for t in layer), default=0.0) for layer in plan.execution_layers)
