"""Worktree strategy: isolated per-task worktrees stacked into branches.

Layers run in order; the tasks of one layer run concurrently, each in
its own worktree created from its resolved parent branch. Successful
tasks are committed inside their worktree, then registered as stacked
branches one at a time in declaration order, so a layer's branches are
known before the next layer computes its bases.
"""

from __future__ import annotations

import logging

from stackweave.core.errors import ExternalToolError, StackTrackingError, WorktreeError
from stackweave.core.execution.context import ExecutionContext, ExecutionRun
from stackweave.core.execution.strategies.base import ExecutionStrategy
from stackweave.core.run_logging import log_info
from stackweave.core.types import (
    ExecutionPlan,
    ExecutionTask,
    Strategy,
    TaskState,
    VcsMode,
    WorktreeContext,
)
from stackweave.core.vcs.stacking import StackingEngine

logger = logging.getLogger(__name__)


class WorktreeStrategy(ExecutionStrategy):
    """Runs tasks in isolated worktrees and builds a branch stack.

    A failed task gets no branch and its dependents are skipped. Other
    stack construction halts after a failed layer unless
    ``continue_on_error`` is set. Worktrees are always released in a
    final cleanup step, subject to the cleanup policy flags.
    """

    name = "worktree"

    def __init__(self, stacking: StackingEngine | None = None) -> None:
        self.stacking = stacking

    def can_handle(self, plan: ExecutionPlan, context: ExecutionContext) -> bool:
        if self.stacking is None:
            return False
        return context.vcs_mode is not VcsMode.SIMPLE or plan.strategy is Strategy.WORKTREE

    async def execute(self, run: ExecutionRun) -> None:
        if self.stacking is None:
            raise WorktreeError("Worktree strategy requires a stacking engine")
        engine = self.stacking
        repo = run.context.cwd
        contexts: dict[str, WorktreeContext] = {}

        async def prepare(task: ExecutionTask) -> str:
            existing = contexts.get(task.id)
            if existing is not None:
                return existing.worktree_path
            async with engine.repo_lock(repo):
                ctx = await engine.create_worktree(task, repo)
            contexts[task.id] = ctx
            return ctx.worktree_path

        async def harvest(task: ExecutionTask) -> None:
            await engine.harvest_commit(task, contexts[task.id])

        async def run_one(task: ExecutionTask) -> bool:
            return await self.run_task(task, run, prepare=prepare, on_success=harvest)

        try:
            for index, layer in enumerate(run.plan.execution_layers):
                if run.cancelled:
                    break
                tasks = self.runnable(layer)
                if not tasks:
                    continue

                run.emit("layer_start", layer=index, tasks=[t.id for t in tasks])
                outcomes = await self.run_layer(tasks, run, run_one)

                for task, completed in zip(tasks, outcomes):
                    if completed:
                        await self._register(task, run, engine, contexts[task.id])

                run.emit("layer_complete", layer=index, failed=outcomes.count(False))
                if not all(outcomes) and not run.context.continue_on_error:
                    run.halted = True
                    break

            if engine.branches and not run.cancelled:
                for warning in await engine.restack(repo):
                    run.warn(warning)
                if run.context.submit_stack:
                    await self._submit(run, engine)
        finally:
            await self._cleanup(run, engine, list(contexts.values()))

    async def _register(
        self,
        task: ExecutionTask,
        run: ExecutionRun,
        engine: StackingEngine,
        context: WorktreeContext,
    ) -> None:
        try:
            branch = await engine.add_task_to_stack(task, run.context.cwd, context)
        except (StackTrackingError, WorktreeError) as e:
            run.warn(f"Task '{task.id}' completed but its branch is not stacked: {e}", task.id)
            return
        run.emit(
            "branch_created",
            task.id,
            branch=branch.name,
            parent=branch.parent_branch_name,
            commit=branch.commit_hash[:12],
        )

    async def _submit(self, run: ExecutionRun, engine: StackingEngine) -> None:
        try:
            run.pr_urls.extend(await engine.submit_stack(run.context.cwd, draft=run.context.draft))
        except ExternalToolError as e:
            run.warn(f"Stack submission failed: {e}")

    async def _cleanup(
        self,
        run: ExecutionRun,
        engine: StackingEngine,
        contexts: list[WorktreeContext],
    ) -> None:
        if not contexts:
            return
        failed = run.halted or run.cancelled or any(
            t.state is TaskState.FAILED for t in run.plan.tasks.values()
        )
        if failed and not run.context.cleanup_on_failure:
            log_info(logger, run.plan.id, "worktrees_kept", count=len(contexts), reason="failure")
            return
        if not failed and not run.context.cleanup_on_success:
            log_info(logger, run.plan.id, "worktrees_kept", count=len(contexts), reason="success")
            return
        async with engine.repo_lock(run.context.cwd):
            for warning in await engine.cleanup_worktrees(contexts, run.context.cwd):
                run.warnings.append(warning)
