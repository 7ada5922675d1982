"""Serial strategy: one task at a time in topological order."""

from __future__ import annotations

from stackweave.core.dag.graph import DependencyGraph
from stackweave.core.execution.context import ExecutionContext, ExecutionRun
from stackweave.core.execution.strategies.base import ExecutionStrategy
from stackweave.core.types import ExecutionPlan, TaskState


class SerialStrategy(ExecutionStrategy):
    """Runs tasks one by one in the repository directory.

    The order is topological with ties broken by declaration order.
    Stops at the first failure unless ``continue_on_error`` is set, in
    which case only the failed task's dependents are skipped.
    """

    name = "serial"

    def can_handle(self, plan: ExecutionPlan, context: ExecutionContext) -> bool:
        return True

    async def execute(self, run: ExecutionRun) -> None:
        plan = run.plan
        order = DependencyGraph([t.task for t in plan.tasks.values()]).topological_order()

        for spec in order:
            if run.cancelled:
                return
            task = plan.tasks[spec.id]
            if task.state is not TaskState.READY:
                continue
            completed = await self.run_task(task, run)
            if not completed and not run.context.continue_on_error:
                run.halted = True
                return
