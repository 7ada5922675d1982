"""Per-run execution options and shared run state."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from stackweave.core.execution.cancellation import CancellationToken
from stackweave.core.execution.events import ExecutionEvent, ObserverSet
from stackweave.core.execution.state_machine import TaskStateMachine
from stackweave.core.executors.base import TaskExecutor
from stackweave.core.types import (
    ExecutionMode,
    ExecutionPlan,
    StackBranch,
    Strategy,
    VcsMode,
)
from stackweave.core.vcs.stacking import StackingEngine


@dataclass
class ExecutionContext:
    """Options for one run.

    Attributes:
        cwd: Repository (or plain directory) the plan runs against.
        strategy: Requested strategy; None lets the planner decide.
        vcs_mode: How changes reach version control.
        mode: What executors are asked to do.
        continue_on_error: Keep going after a task fails for good.
        max_retries: Failed attempts allowed per task; None uses the planner default.
        trunk: Stack base branch; None means the current branch.
        cleanup_on_success: Remove worktrees after a clean run.
        cleanup_on_failure: Remove worktrees after a failed run.
        init_stack: Initialize the stacking CLI if needed.
        submit_stack: Open pull requests once the stack is built.
        draft: Submit pull requests as drafts.
        max_concurrency: Cap on tasks running at once within a layer.
        cancellation: Token checked at task and layer boundaries.
    """

    cwd: str = field(default_factory=os.getcwd)
    strategy: Strategy | None = None
    vcs_mode: VcsMode = VcsMode.SIMPLE
    mode: ExecutionMode = ExecutionMode.EXECUTE
    continue_on_error: bool = False
    max_retries: int | None = None
    trunk: str | None = None
    cleanup_on_success: bool = True
    cleanup_on_failure: bool = False
    init_stack: bool = False
    submit_stack: bool = False
    draft: bool = True
    max_concurrency: int | None = None
    cancellation: CancellationToken = field(default_factory=CancellationToken)

    def __post_init__(self) -> None:
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")


@dataclass
class ExecutionRun:
    """Everything a strategy needs while executing one plan."""

    plan: ExecutionPlan
    context: ExecutionContext
    state_machine: TaskStateMachine
    executor: TaskExecutor
    observers: ObserverSet
    stacking: StackingEngine | None = None
    warnings: list[str] = field(default_factory=list)
    pr_urls: list[str] = field(default_factory=list)
    halted: bool = False

    @property
    def cancelled(self) -> bool:
        return self.context.cancellation.is_cancelled

    @property
    def branches(self) -> list[StackBranch]:
        return self.stacking.branches if self.stacking is not None else []

    def emit(self, event_type: Any, task_id: str | None = None, **data: Any) -> None:
        self.observers.on_execution_event(
            ExecutionEvent(event_type=event_type, plan_id=self.plan.id, task_id=task_id, data=data)
        )

    def warn(self, message: str, task_id: str | None = None) -> None:
        self.warnings.append(message)
        self.emit("stack_warning", task_id=task_id, message=message)
