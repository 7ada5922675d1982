"""Executor that runs a configured agent command line per task."""

from __future__ import annotations

import logging
import re
import shlex
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from stackweave.core.errors import ExternalToolError
from stackweave.core.executors.base import ExecutorResult
from stackweave.core.run_logging import log_complete, log_start, log_warning
from stackweave.core.types import ExecutionMode, ExecutionTask
from stackweave.core.vcs.commands import CommandRunner
from stackweave.core.vcs.git import GitClient

logger = logging.getLogger(__name__)

DEFAULT_TASK_TIMEOUT = 1800.0

PLACEHOLDER_PATTERN = re.compile(r"\{(prompt|task_id|title|workdir)\}")


def build_prompt(task: ExecutionTask) -> str:
    """Prompt text for a task: its agent prompt, falling back to the description."""
    spec = task.task
    body = spec.agent_prompt.strip() or spec.description.strip() or spec.title
    hints = list(dict.fromkeys(spec.touches + spec.produces))
    if hints:
        body += "\n\nFiles in scope:\n" + "\n".join(f"- {path}" for path in hints)
    return body


@dataclass
class CommandTaskExecutor:
    """Runs ``command`` in the task's working directory.

    The placeholders ``{prompt}``, ``{task_id}``, ``{title}`` and
    ``{workdir}`` are substituted in every argument. Any other braces,
    such as inline JSON settings, are passed through unchanged.

    Example:
        >>> executor = CommandTaskExecutor.from_string('claude -p "{prompt}"')
        >>> result = await executor.execute(task, "/repo/.stackweave/worktrees/a", ExecutionMode.EXECUTE)
        >>> result.status
        'success'
    """

    command: Sequence[str]
    timeout: float = DEFAULT_TASK_TIMEOUT
    runner: CommandRunner = field(default_factory=CommandRunner)
    git: GitClient | None = None

    def __post_init__(self) -> None:
        if not self.command:
            raise ValueError("Executor command must not be empty")

    @classmethod
    def from_string(cls, command: str, **kwargs: object) -> CommandTaskExecutor:
        return cls(command=shlex.split(command), **kwargs)  # type: ignore[arg-type]

    def render(self, task: ExecutionTask, workdir: str) -> list[str]:
        values = {
            "prompt": build_prompt(task),
            "task_id": task.id,
            "title": task.title,
            "workdir": workdir,
        }
        return [PLACEHOLDER_PATTERN.sub(lambda m: values[m.group(1)], arg) for arg in self.command]

    async def execute(
        self,
        task: ExecutionTask,
        workdir: str,
        mode: ExecutionMode,
    ) -> ExecutorResult:
        argv = self.render(task, workdir)
        if mode is not ExecutionMode.EXECUTE:
            return ExecutorResult(status="success", output=f"[{mode.value}] {shlex.join(argv)}")

        start = time.monotonic()
        log_start(logger, task.id, "agent_start", command=argv[0], workdir=workdir)
        result = await self.runner.run(argv, cwd=workdir, timeout=self.timeout, check=False)
        log_complete(logger, task.id, "agent_complete", time.monotonic() - start, exit_code=result.exit_code)

        files: list[str] = []
        if self.git is not None and result.ok:
            try:
                files = await self.git.changed_files(workdir)
            except ExternalToolError as e:
                log_warning(logger, task.id, "changed_files_unavailable", error=e)

        if result.ok:
            return ExecutorResult(
                status="success", output=result.output, exit_code=0, files_changed=files
            )
        return ExecutorResult(
            status="failure",
            output=result.output,
            exit_code=result.exit_code,
            error=f"Agent exited with code {result.exit_code}",
        )

    async def interrupt(self) -> None:
        await self.runner.interrupt()
