"""Task executor boundary.

An executor performs the actual work of a task inside a working
directory: typically by driving a coding agent. The scheduler only
sees the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Protocol, runtime_checkable

from stackweave.core.types import ExecutionMode, ExecutionTask


@dataclass
class ExecutorResult:
    """Outcome of one task attempt.

    Attributes:
        status: "success" or "failure".
        output: Captured output.
        exit_code: Process exit code, if a process ran.
        files_changed: Paths the executor reports as modified.
        error: Failure description.
    """

    status: Literal["success", "failure"]
    output: str = ""
    exit_code: int | None = None
    files_changed: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == "success"


@runtime_checkable
class TaskExecutor(Protocol):
    """Runs one task in ``workdir``.

    Implementations may raise ``ExternalToolError`` or ``WorktreeError``;
    the strategy records either as a failed attempt.
    """

    async def execute(
        self,
        task: ExecutionTask,
        workdir: str,
        mode: ExecutionMode,
    ) -> ExecutorResult: ...


async def interrupt_executor(executor: TaskExecutor) -> None:
    """Call the executor's optional ``interrupt()`` coroutine."""
    interrupt = getattr(executor, "interrupt", None)
    if interrupt is not None:
        await interrupt()
