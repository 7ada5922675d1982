"""stackweave - run a dependency graph of tasks as a stack of branches.

Tasks declare what they require. stackweave layers them, runs each layer
with as much concurrency as the graph allows, and (in stacked mode) turns
every task's commit into a branch stacked on its dependency's branch.

Layers:
    core/dag/          Dependency graph layering and strategy selection
    core/execution/    State machine, strategies and orchestrator
    core/vcs/          git / git-spice adapters and the stacking engine
    core/executors/    Task executors (agent command, mock)
    frontends/cli/     Command-line interface

Quick Start:
    >>> from stackweave import ExecutionOrchestrator, ExecutionContext, Task
    >>> from stackweave.core.executors import MockTaskExecutor
    >>>
    >>> tasks = [Task(id="a"), Task(id="b", requires=("a",))]
    >>> orchestrator = ExecutionOrchestrator(executor=MockTaskExecutor())
    >>> result = await orchestrator.execute(tasks, ExecutionContext(cwd="/repo"))
    >>> result.completed
    2
"""

from stackweave.__version__ import __version__
from stackweave.core import (
    CycleDetected,
    ExecutionContext,
    ExecutionOrchestrator,
    ExecutionPlanner,
    ExternalToolError,
    InvalidTransitionError,
    StackingEngine,
    StackTrackingError,
    Task,
    TaskState,
    TaskStateMachine,
    ValidationError,
    WorktreeError,
)

__all__ = [
    "__version__",
    "CycleDetected",
    "ExecutionContext",
    "ExecutionOrchestrator",
    "ExecutionPlanner",
    "ExternalToolError",
    "InvalidTransitionError",
    "StackTrackingError",
    "StackingEngine",
    "Task",
    "TaskState",
    "TaskStateMachine",
    "ValidationError",
    "WorktreeError",
]
