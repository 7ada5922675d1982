"""Layer-synchronous parallel strategy without isolation."""

from __future__ import annotations

from stackweave.core.execution.context import ExecutionContext, ExecutionRun
from stackweave.core.execution.strategies.base import ExecutionStrategy
from stackweave.core.types import ExecutionPlan, ExecutionTask, Strategy


class ParallelStrategy(ExecutionStrategy):
    """Runs each layer's tasks concurrently in the repository directory.

    Every task in a layer is awaited, even after one fails; failures are
    evaluated before the next layer starts. Tasks share one working
    directory, so this suits plans whose tasks touch disjoint files.
    """

    name = "parallel"

    def can_handle(self, plan: ExecutionPlan, context: ExecutionContext) -> bool:
        if plan.strategy not in (Strategy.PARALLEL, Strategy.HYBRID):
            return False
        return any(len(layer) > 1 for layer in plan.execution_layers)

    async def execute(self, run: ExecutionRun) -> None:
        async def run_one(task: ExecutionTask) -> bool:
            return await self.run_task(task, run)

        for index, layer in enumerate(run.plan.execution_layers):
            if run.cancelled:
                return
            tasks = self.runnable(layer)
            if not tasks:
                continue

            run.emit("layer_start", layer=index, tasks=[t.id for t in tasks])
            outcomes = await self.run_layer(tasks, run, run_one)
            run.emit("layer_complete", layer=index, failed=outcomes.count(False))

            if not all(outcomes) and not run.context.continue_on_error:
                run.halted = True
                return
