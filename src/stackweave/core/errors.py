"""Error types for stackweave.

Every failure the scheduler can surface has a class here so callers can
tell a malformed plan apart from a failing git invocation or a stack
that could only be partially built.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence


class StackweaveError(Exception):
    """Base error for all stackweave failures."""


class ValidationError(StackweaveError):
    """The task graph is malformed.

    Raised before any task runs. Carries every problem found so the
    user can fix them in one pass.

    Attributes:
        errors: Individual validation messages.
    """

    def __init__(self, message: str, errors: Sequence[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class CycleDetected(ValidationError):
    """The dependency graph contains a cycle.

    Attributes:
        task_ids: Ids of the tasks that could not be layered.
    """

    def __init__(self, task_ids: Iterable[str]) -> None:
        self.task_ids = sorted(task_ids)
        message = f"Cycle detected among tasks: {', '.join(self.task_ids)}"
        super().__init__(message, [message])


class InvalidTransitionError(StackweaveError):
    """A state-machine move outside the whitelist was requested.

    This is an internal invariant violation, never expected in normal
    operation, so nothing in the scheduler catches it.
    """

    def __init__(self, task_id: str, from_state: str, to_state: str) -> None:
        self.task_id = task_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Task '{task_id}': illegal transition {from_state} -> {to_state}")


class ExternalToolError(StackweaveError):
    """An external command exited non-zero or could not be spawned.

    Attributes:
        command: The argv that was run.
        exit_code: Process exit code, or None if the process never started.
        output: Combined stdout and stderr.
    """

    def __init__(
        self,
        message: str,
        command: Sequence[str] = (),
        exit_code: int | None = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.command = list(command)
        self.exit_code = exit_code
        self.output = output

    @property
    def command_text(self) -> str:
        return " ".join(self.command)

    def __str__(self) -> str:
        base = super().__str__()
        if self.output.strip():
            return f"{base}: {self.output.strip()}"
        return base


class CommandTimeoutError(ExternalToolError):
    """An external command exceeded its timeout and was killed."""

    def __init__(self, command: Sequence[str], timeout: float, output: str = "") -> None:
        self.timeout = timeout
        super().__init__(
            f"Command timed out after {timeout}s: {' '.join(command)}",
            command=command,
            exit_code=None,
            output=output,
        )


class WorktreeError(StackweaveError):
    """Creating, fetching from, or removing a worktree failed."""

    def __init__(self, message: str, task_id: str | None = None) -> None:
        super().__init__(message)
        self.task_id = task_id


class StackTrackingError(StackweaveError):
    """Branch creation or tracking failed after a successful commit.

    The task's code change is real, so this never fails the task. The
    run reports it as a degraded stack.
    """

    def __init__(
        self,
        message: str,
        task_id: str,
        commit_hash: str | None = None,
        branch_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.commit_hash = commit_hash
        # Set when the branch exists but could not be tracked
        self.branch_name = branch_name


class CancelledError(StackweaveError):
    """Raised when execution is cancelled.

    Caught at the orchestrator level to report partial results.
    """
