"""Scripted executor for dry runs and tests."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from stackweave.core.executors.base import ExecutorResult
from stackweave.core.types import ExecutionMode, ExecutionTask


@dataclass
class MockTaskExecutor:
    """Returns scripted outcomes instead of running anything.

    Attributes:
        outcomes: Per task id, either a bool for every attempt or a list
            of bools consumed one per attempt (the last one repeats).
            Tasks not listed succeed.
        delay: Seconds each attempt takes.
        write_files: Write ``<task-id>.md`` into the working directory on
            success so worktree runs have something to commit.
        calls: (task id, workdir) of every attempt, in call order.
    """

    outcomes: Mapping[str, bool | Sequence[bool]] = field(default_factory=dict)
    delay: float = 0.0
    write_files: bool = False
    calls: list[tuple[str, str]] = field(default_factory=list)
    _attempts: dict[str, int] = field(default_factory=dict, init=False, repr=False)

    def _succeeds(self, task_id: str) -> bool:
        outcome = self.outcomes.get(task_id, True)
        if isinstance(outcome, bool):
            return outcome
        attempt = self._attempts.get(task_id, 0)
        self._attempts[task_id] = attempt + 1
        if not outcome:
            return True
        return outcome[min(attempt, len(outcome) - 1)]

    def attempts(self, task_id: str) -> int:
        return sum(1 for called_id, _ in self.calls if called_id == task_id)

    async def execute(
        self,
        task: ExecutionTask,
        workdir: str,
        mode: ExecutionMode,
    ) -> ExecutorResult:
        self.calls.append((task.id, workdir))
        if self.delay:
            await asyncio.sleep(self.delay)

        if not self._succeeds(task.id):
            return ExecutorResult(
                status="failure",
                output=f"mock failure for {task.id}",
                exit_code=1,
                error="mock failure",
            )

        files: list[str] = []
        if self.write_files and mode is ExecutionMode.EXECUTE:
            path = Path(workdir) / f"{task.id}.md"
            path.write_text(f"# {task.title}\n\n{task.task.description}\n")
            files.append(path.name)
        return ExecutorResult(
            status="success", output=f"mock output for {task.id}", exit_code=0, files_changed=files
        )
