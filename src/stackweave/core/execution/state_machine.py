"""Task state machine.

Every state change goes through ``transition()``, which enforces the
whitelist below and appends to the task's history, so a run's full
attempt history is auditable afterwards. Retrying is the recorded move
``failed -> queued``, not a loop around the executor.

    pending --> ready --> queued --> running --> completed
       |          |         |           |
       v          v         v           v
    blocked --> skipped  skipped      failed --> queued (retry)
       |
       v
     ready
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import Any

from stackweave.core.errors import InvalidTransitionError
from stackweave.core.execution.events import ObserverSet
from stackweave.core.types import ExecutionTask, TaskState, Transition

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.PENDING: frozenset({TaskState.READY, TaskState.BLOCKED}),
    TaskState.READY: frozenset({TaskState.QUEUED, TaskState.SKIPPED}),
    TaskState.QUEUED: frozenset({TaskState.RUNNING, TaskState.SKIPPED}),
    TaskState.RUNNING: frozenset({TaskState.COMPLETED, TaskState.FAILED}),
    TaskState.FAILED: frozenset({TaskState.QUEUED}),
    TaskState.BLOCKED: frozenset({TaskState.READY, TaskState.SKIPPED}),
    TaskState.COMPLETED: frozenset(),
    TaskState.SKIPPED: frozenset(),
}

_ENDING_STATES = (TaskState.COMPLETED, TaskState.FAILED, TaskState.SKIPPED)

# Legal route from each state to skipped
_SKIP_PATHS: dict[TaskState, tuple[TaskState, ...]] = {
    TaskState.PENDING: (TaskState.BLOCKED, TaskState.SKIPPED),
    TaskState.BLOCKED: (TaskState.SKIPPED,),
    TaskState.READY: (TaskState.SKIPPED,),
    TaskState.QUEUED: (TaskState.SKIPPED,),
}


def is_valid_transition(from_state: TaskState, to_state: TaskState) -> bool:
    return to_state in VALID_TRANSITIONS[from_state]


class TaskStateMachine:
    """Owns the state of every task in one plan.

    Example:
        >>> sm = TaskStateMachine(plan.tasks.values())
        >>> sm.initialize()                      # roots become ready
        >>> sm.start(task)                       # ready -> queued -> running
        >>> sm.fail(task, "exit 1")              # running -> failed
        >>> if sm.can_retry(task):
        ...     sm.retry(task)                   # failed -> queued
    """

    def __init__(
        self,
        tasks: Iterable[ExecutionTask] = (),
        observers: ObserverSet | None = None,
    ) -> None:
        self._tasks: dict[str, ExecutionTask] = {t.id: t for t in tasks}
        self._observers = observers or ObserverSet()

    @property
    def tasks(self) -> dict[str, ExecutionTask]:
        return self._tasks

    def get(self, task_id: str) -> ExecutionTask:
        return self._tasks[task_id]

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def transition(
        self,
        task: ExecutionTask,
        to_state: TaskState,
        reason: str | None = None,
    ) -> Transition:
        """Move a task to ``to_state``.

        Entering running stamps ``start_time``; entering completed,
        failed or skipped stamps ``end_time`` and ``duration``. Entering
        failed also counts the attempt in ``retry_count``.

        Raises:
            InvalidTransitionError: The move is not whitelisted. The task
                is left untouched.
        """
        from_state = task.state
        if not is_valid_transition(from_state, to_state):
            raise InvalidTransitionError(task.id, from_state.value, to_state.value)

        now = time.time()
        record = Transition(from_state, to_state, timestamp=now, reason=reason)
        task.state_history.append(record)

        if to_state is TaskState.RUNNING:
            task.start_time = now
            task.end_time = None
            task.duration = None
        elif to_state in _ENDING_STATES:
            task.end_time = now
            task.duration = now - task.start_time if task.start_time is not None else 0.0
            if to_state is TaskState.FAILED:
                task.retry_count += 1

        self._observers.on_task_state_change(task, record)
        return record

    def can_retry(self, task: ExecutionTask) -> bool:
        return task.state is TaskState.FAILED and task.retry_count < task.max_retries

    def retry(self, task: ExecutionTask, reason: str | None = None) -> Transition:
        """Re-queue a failed task."""
        return self.transition(task, TaskState.QUEUED, reason or f"retry {task.retry_count}")

    def start(self, task: ExecutionTask) -> None:
        """Bring a ready (or re-queued) task to running."""
        if task.state is TaskState.READY:
            self.transition(task, TaskState.QUEUED)
        self.transition(task, TaskState.RUNNING)

    def complete(self, task: ExecutionTask, reason: str | None = None) -> list[Transition]:
        """Mark a running task completed and propagate to its dependents."""
        changes = [self.transition(task, TaskState.COMPLETED, reason)]
        changes.extend(self.propagate(task.id))
        return changes

    def fail(self, task: ExecutionTask, reason: str | None = None) -> list[Transition]:
        """Mark a running task failed.

        Dependents are only touched once retries are exhausted, so a
        task that will be retried does not take its dependents down.
        """
        task.error = reason or task.error
        changes = [self.transition(task, TaskState.FAILED, reason)]
        if not self.can_retry(task):
            changes.extend(self.propagate(task.id))
        return changes

    def skip(self, task: ExecutionTask, reason: str | None = None) -> list[Transition]:
        """Skip a not-yet-running task via a legal route, then propagate.

        Tasks already running or finished are left alone.
        """
        path = _SKIP_PATHS.get(task.state)
        if path is None:
            return []
        changes = [self.transition(task, state, reason) for state in path]
        changes.extend(self.propagate(task.id))
        return changes

    # -------------------------------------------------------------------------
    # Propagation
    # -------------------------------------------------------------------------

    def initialize(self) -> list[ExecutionTask]:
        """Mark pending tasks without dependencies ready.

        Returns:
            The tasks that became ready.
        """
        ready = []
        for task in self._tasks.values():
            if task.state is TaskState.PENDING and not task.requires:
                self.transition(task, TaskState.READY, "no dependencies")
                ready.append(task)
        return ready

    def next_state(self, task: ExecutionTask) -> TaskState | None:
        """State a pending or blocked task should move to, if any."""
        if task.state not in (TaskState.PENDING, TaskState.BLOCKED):
            return None

        dep_states = [self._tasks[d].state for d in task.requires if d in self._tasks]
        if any(s in (TaskState.FAILED, TaskState.SKIPPED) for s in dep_states):
            return TaskState.SKIPPED
        if all(s is TaskState.COMPLETED for s in dep_states):
            return TaskState.READY
        if task.state is TaskState.PENDING and any(
            s in (TaskState.RUNNING, TaskState.QUEUED) for s in dep_states
        ):
            return TaskState.BLOCKED
        return None

    def propagate(self, changed_id: str) -> list[Transition]:
        """Update the dependents of a task that reached an ending state.

        Skips cascade transitively. Idempotent: with no underlying
        change a second call records nothing.

        Returns:
            Transitions applied, in order.
        """
        changes: list[Transition] = []
        pending_ids = [changed_id]
        while pending_ids:
            current = pending_ids.pop(0)
            for task in self._tasks.values():
                if task.id == current or current not in task.requires:
                    continue
                target = self.next_state(task)
                if target is None:
                    continue
                if target is TaskState.SKIPPED:
                    reason = f"dependency '{current}' {self._tasks[current].state.value}"
                    for state in _SKIP_PATHS[task.state]:
                        changes.append(self.transition(task, state, reason))
                    pending_ids.append(task.id)
                elif target is TaskState.READY:
                    changes.append(self.transition(task, target, "dependencies completed"))
                else:
                    changes.append(self.transition(task, target, f"waiting on '{current}'"))
        return changes

    def skip_remaining(self, reason: str) -> list[Transition]:
        """Skip every task that has not started. Used on halt and cancel."""
        changes: list[Transition] = []
        for task in self._tasks.values():
            path = _SKIP_PATHS.get(task.state)
            if path is None:
                continue
            for state in path:
                changes.append(self.transition(task, state, reason))
        return changes

    def cancel_running(self, reason: str = "cancelled") -> list[ExecutionTask]:
        """Fail every running task with ``reason``.

        Returns:
            The tasks that were running.
        """
        cancelled = []
        for task in self._tasks.values():
            if task.state is TaskState.RUNNING:
                task.error = reason
                self.transition(task, TaskState.FAILED, reason)
                cancelled.append(task)
        return cancelled

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def statistics(self) -> dict[str, int]:
        """Count of tasks per state, every state present."""
        stats = {state.value: 0 for state in TaskState}
        for task in self._tasks.values():
            stats[task.state.value] += 1
        return stats

    def progress(self) -> dict[str, Any]:
        total = len(self._tasks)
        finished = sum(
            1
            for t in self._tasks.values()
            if t.state in (TaskState.COMPLETED, TaskState.SKIPPED)
            or (t.state is TaskState.FAILED and not self.can_retry(t))
        )
        completed = sum(1 for t in self._tasks.values() if t.state is TaskState.COMPLETED)
        return {
            "total": total,
            "finished": finished,
            "completed": completed,
            "percent": round(100.0 * completed / total, 1) if total else 100.0,
        }

    def is_finished(self) -> bool:
        progress = self.progress()
        return progress["finished"] == progress["total"]

    def export_state(self) -> dict[str, Any]:
        return {
            "statistics": self.statistics(),
            "progress": self.progress(),
            "tasks": {task_id: task.to_dict() for task_id, task in self._tasks.items()},
        }
