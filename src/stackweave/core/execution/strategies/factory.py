"""Strategy selection."""

from __future__ import annotations

import logging

from stackweave.core.execution.context import ExecutionContext
from stackweave.core.execution.strategies.base import ExecutionStrategy
from stackweave.core.execution.strategies.parallel import ParallelStrategy
from stackweave.core.execution.strategies.serial import SerialStrategy
from stackweave.core.execution.strategies.worktree import WorktreeStrategy
from stackweave.core.types import ExecutionPlan, Strategy
from stackweave.core.vcs.stacking import StackingEngine

logger = logging.getLogger(__name__)


class StrategyFactory:
    """Holds the available strategies in fallback order.

    The order is worktree, parallel, serial. Serial always accepts a
    plan, so selection never fails.
    """

    def __init__(self, stacking: StackingEngine | None = None) -> None:
        self._strategies: list[ExecutionStrategy] = [
            WorktreeStrategy(stacking),
            ParallelStrategy(),
            SerialStrategy(),
        ]

    @property
    def strategies(self) -> list[ExecutionStrategy]:
        return list(self._strategies)

    def get(self, name: str) -> ExecutionStrategy | None:
        return next((s for s in self._strategies if s.name == name), None)

    def select(self, plan: ExecutionPlan, context: ExecutionContext) -> ExecutionStrategy:
        """Honor the requested strategy if it can run the plan, else fall back."""
        if context.strategy is not None:
            # Hybrid plans run on the layer-synchronous parallel strategy
            name = "parallel" if context.strategy is Strategy.HYBRID else context.strategy.value
            requested = self.get(name)
            if requested is not None and requested.can_handle(plan, context):
                return requested
            logger.debug("requested strategy %s cannot handle plan %s", name, plan.id)

        for strategy in self._strategies:
            if strategy.can_handle(plan, context):
                return strategy
        raise AssertionError("serial strategy must accept every plan")
