"""Base class for execution strategies and the shared attempt loop."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence

from stackweave.core.errors import ExternalToolError, WorktreeError
from stackweave.core.execution.context import ExecutionContext, ExecutionRun
from stackweave.core.executors.base import ExecutorResult
from stackweave.core.run_logging import log_error
from stackweave.core.types import ExecutionPlan, ExecutionTask, TaskState

logger = logging.getLogger(__name__)

Prepare = Callable[[ExecutionTask], Awaitable[str]]
OnSuccess = Callable[[ExecutionTask], Awaitable[None]]


class ExecutionStrategy(ABC):
    """Drives a plan's tasks through the executor.

    Strategies leave tasks they never reached untouched; the
    orchestrator skips them afterwards.
    """

    name: str = ""

    @abstractmethod
    def can_handle(self, plan: ExecutionPlan, context: ExecutionContext) -> bool:
        """Whether this strategy can run ``plan`` under ``context``."""

    @abstractmethod
    async def execute(self, run: ExecutionRun) -> None:
        """Run the plan, recording every outcome in the state machine."""

    async def run_task(
        self,
        task: ExecutionTask,
        run: ExecutionRun,
        workdir: str | None = None,
        prepare: Prepare | None = None,
        on_success: OnSuccess | None = None,
    ) -> bool:
        """Run one task to completion, retrying per its budget.

        Args:
            task: A ready task.
            run: Run state.
            workdir: Directory to execute in; ``prepare`` overrides it.
            prepare: Resolves the working directory once the task is running.
            on_success: Called after a successful attempt, still while
                running; raising there fails the attempt.

        Returns:
            True if the task completed.
        """
        sm = run.state_machine
        while True:
            sm.start(task)
            run.emit("task_start", task.id, attempt=task.retry_count + 1)

            try:
                directory = await prepare(task) if prepare is not None else (workdir or run.context.cwd)
                result = await run.executor.execute(task, directory, run.context.mode)
                if result.success and on_success is not None:
                    await on_success(task)
            except (ExternalToolError, WorktreeError) as e:
                log_error(logger, task.id, "task_error", e)
                result = ExecutorResult(
                    status="failure",
                    output=getattr(e, "output", ""),
                    exit_code=getattr(e, "exit_code", None),
                    error=str(e),
                )

            if task.state is not TaskState.RUNNING:
                # Failed by cancellation while the executor was running
                return False

            task.output = result.output
            task.exit_code = result.exit_code
            if result.files_changed:
                task.files_changed = list(result.files_changed)

            if result.success:
                sm.complete(task)
                run.emit("task_complete", task.id, duration=f"{task.duration or 0.0:.1f}s")
                return True

            error = result.error or f"exit code {result.exit_code}"
            sm.fail(task, error)
            if run.cancelled or not sm.can_retry(task):
                run.emit("task_fail", task.id, error=error, attempts=task.retry_count)
                return False

            sm.retry(task)
            run.emit("task_retry", task.id, attempt=task.retry_count + 1, error=error)

    async def run_layer(
        self,
        tasks: Sequence[ExecutionTask],
        run: ExecutionRun,
        runner: Callable[[ExecutionTask], Awaitable[bool]],
    ) -> list[bool]:
        """Run tasks concurrently and wait for every one of them."""
        limit = run.context.max_concurrency
        if limit is None:
            return list(await asyncio.gather(*(runner(t) for t in tasks)))

        semaphore = asyncio.Semaphore(limit)

        async def bounded(task: ExecutionTask) -> bool:
            async with semaphore:
                if run.cancelled:
                    return False
                return await runner(task)

        return list(await asyncio.gather(*(bounded(t) for t in tasks)))

    @staticmethod
    def runnable(tasks: Sequence[ExecutionTask]) -> list[ExecutionTask]:
        return [t for t in tasks if t.state is TaskState.READY]

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
