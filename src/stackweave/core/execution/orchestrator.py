"""Execution orchestrator: plan, select a strategy, run, aggregate."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence

from stackweave.core.dag.planner import ExecutionPlanner, ValidationReport
from stackweave.core.errors import CancelledError
from stackweave.core.execution.context import ExecutionContext, ExecutionRun
from stackweave.core.execution.events import ExecutionObserver, ObserverSet
from stackweave.core.execution.state_machine import TaskStateMachine
from stackweave.core.execution.strategies.factory import StrategyFactory
from stackweave.core.execution.strategies.worktree import WorktreeStrategy
from stackweave.core.executors.base import TaskExecutor, interrupt_executor
from stackweave.core.run_logging import log_complete, log_info, log_start
from stackweave.core.types import (
    ExecutionMode,
    ExecutionPlan,
    ExecutionResult,
    PlanStatus,
    Strategy,
    Task,
    TaskState,
)
from stackweave.core.vcs.stacking import StackingEngine

logger = logging.getLogger(__name__)


class ExecutionOrchestrator:
    """Runs task lists end to end.

    Observers receive every task state change and execution event. A
    malformed graph raises ``ValidationError`` before anything runs;
    every other failure is reported in the returned result.

    Example:
        >>> orchestrator = ExecutionOrchestrator(
        ...     executor=CommandTaskExecutor.from_string("claude -p {prompt}"),
        ...     stacking=StackingEngine(spice=GitSpiceClient()),
        ...     observers=[LoggingObserver()],
        ... )
        >>> result = await orchestrator.execute(
        ...     tasks, ExecutionContext(cwd="/repo", vcs_mode=VcsMode.STACKED)
        ... )
        >>> result.completed, result.failed, [b.name for b in result.branches]
        (3, 0, ['stackweave/a', 'stackweave/b', 'stackweave/c'])
    """

    def __init__(
        self,
        executor: TaskExecutor,
        stacking: StackingEngine | None = None,
        planner: ExecutionPlanner | None = None,
        observers: Iterable[ExecutionObserver] = (),
        factory: StrategyFactory | None = None,
    ) -> None:
        self.executor = executor
        self.stacking = stacking
        self.planner = planner or ExecutionPlanner()
        self.observers = ObserverSet(observers)
        self.factory = factory or StrategyFactory(stacking)
        self._active: ExecutionRun | None = None

    def add_observer(self, observer: ExecutionObserver) -> None:
        self.observers.add(observer)

    def validate_only(self, tasks: Sequence[Task]) -> ValidationReport:
        return self.planner.validate(tasks)

    def create_plan(self, tasks: Sequence[Task], context: ExecutionContext) -> ExecutionPlan:
        """Build the plan for ``tasks``.

        Raises:
            ValidationError: The graph is malformed.
        """
        return self.planner.create_plan(
            tasks, strategy=context.strategy, max_retries=context.max_retries
        )

    def estimate_execution_time(self, plan: ExecutionPlan) -> float:
        return self.planner.estimate_execution_time(plan)

    @property
    def is_running(self) -> bool:
        return self._active is not None

    @staticmethod
    async def _prepare_stack(engine: StackingEngine, context: ExecutionContext) -> None:
        engine.reset()
        if context.init_stack:
            await engine.initialize(context.cwd, context.trunk)
        elif context.trunk:
            engine.trunk = context.trunk
        else:
            current = await engine.git.current_branch(context.cwd)
            if current:
                engine.trunk = current

    async def execute(
        self,
        tasks: Sequence[Task],
        context: ExecutionContext | None = None,
    ) -> ExecutionResult:
        """Plan and run ``tasks``.

        Raises:
            ValidationError: The graph is malformed; nothing ran.
            ExternalToolError: The stack could not be initialized.
        """
        context = context or ExecutionContext()
        plan = self.create_plan(tasks, context)
        estimate = self.estimate_execution_time(plan)

        if context.mode is ExecutionMode.VALIDATE:
            return ExecutionResult(
                plan_id=plan.id,
                strategy=plan.strategy,
                status=PlanStatus.COMPLETED,
                tasks=list(plan.tasks.values()),
                estimated_duration=estimate,
            )

        strategy = self.factory.select(plan, context)
        engine = strategy.stacking if isinstance(strategy, WorktreeStrategy) else None
        if engine is not None:
            await self._prepare_stack(engine, context)

        state_machine = TaskStateMachine(plan.tasks.values(), self.observers)
        run = ExecutionRun(
            plan=plan,
            context=context,
            state_machine=state_machine,
            executor=self.executor,
            observers=self.observers,
            stacking=engine,
        )

        start = time.monotonic()
        plan.status = PlanStatus.RUNNING
        self._active = run
        log_start(
            logger,
            plan.id,
            "plan_start",
            tasks=len(plan.tasks),
            layers=len(plan.execution_layers),
            strategy=strategy.name,
        )
        run.emit("plan_start", tasks=len(plan.tasks), strategy=strategy.name, estimate=estimate)

        try:
            state_machine.initialize()
            try:
                await strategy.execute(run)
            except CancelledError:
                pass

            if run.cancelled:
                state_machine.skip_remaining(context.cancellation.reason or "cancelled")
            elif run.halted:
                state_machine.skip_remaining("halted after failure")
            else:
                state_machine.skip_remaining("not reached")
        finally:
            self._active = None

        if run.cancelled:
            plan.status = PlanStatus.CANCELLED
        elif any(t.state is TaskState.FAILED for t in plan.tasks.values()):
            plan.status = PlanStatus.FAILED
        else:
            plan.status = PlanStatus.COMPLETED

        duration = time.monotonic() - start
        result = ExecutionResult(
            plan_id=plan.id,
            strategy=Strategy(strategy.name),
            status=plan.status,
            tasks=list(plan.tasks.values()),
            branches=list(run.branches),
            pr_urls=list(run.pr_urls),
            warnings=list(run.warnings),
            duration=duration,
            estimated_duration=estimate,
        )
        run.emit(
            "plan_complete",
            status=plan.status.value,
            completed=result.completed,
            failed=result.failed,
            skipped=result.skipped,
        )
        log_complete(
            logger,
            plan.id,
            "plan_complete",
            duration,
            status=plan.status.value,
            completed=result.completed,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result

    async def cancel(self, reason: str = "cancelled") -> None:
        """Cancel the active run.

        Running tasks are failed with ``reason`` and the executor is
        interrupted, best effort. Worktree teardown is attempted by the
        strategy's cleanup but not guaranteed.
        """
        run = self._active
        if run is None:
            return
        run.context.cancellation.cancel(reason)
        cancelled = run.state_machine.cancel_running(reason)
        log_info(logger, run.plan.id, "plan_cancel", running=[t.id for t in cancelled])
        run.emit("progress_update", cancelled=[t.id for t in cancelled], **run.state_machine.progress())
        await interrupt_executor(self.executor)
