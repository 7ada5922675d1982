"""Dependency graph layering and execution planning.

Classes:
    DependencyGraph: Validation, layering and ordering of tasks.
    ExecutionPlanner: Builds strategy-bound execution plans.
    ValidationReport: Errors and warnings for a task list.

Example:
    >>> from stackweave.core.dag import ExecutionPlanner
    >>> from stackweave.core.types import Task
    >>>
    >>> plan = ExecutionPlanner().create_plan([
    ...     Task(id="a"),
    ...     Task(id="b", requires=("a",)),
    ... ])
    >>> [[t.id for t in layer] for layer in plan.execution_layers]
    [['a'], ['b']]
"""

from stackweave.core.dag.graph import DependencyGraph
from stackweave.core.dag.planner import ExecutionPlanner, ValidationReport, compute_metrics

__all__ = ["DependencyGraph", "ExecutionPlanner", "ValidationReport", "compute_metrics"]
