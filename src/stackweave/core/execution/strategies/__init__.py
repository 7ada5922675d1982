"""Execution strategies.

Classes:
    ExecutionStrategy: Base class with the shared attempt loop.
    SerialStrategy: One task at a time, topological order.
    ParallelStrategy: Layer-synchronous concurrency, no isolation.
    WorktreeStrategy: Isolated worktrees stacked into branches.
    StrategyFactory: Selection with worktree -> parallel -> serial fallback.
"""

from stackweave.core.execution.strategies.base import ExecutionStrategy
from stackweave.core.execution.strategies.factory import StrategyFactory
from stackweave.core.execution.strategies.parallel import ParallelStrategy
from stackweave.core.execution.strategies.serial import SerialStrategy
from stackweave.core.execution.strategies.worktree import WorktreeStrategy

__all__ = [
    "ExecutionStrategy",
    "ParallelStrategy",
    "SerialStrategy",
    "StrategyFactory",
    "WorktreeStrategy",
]
