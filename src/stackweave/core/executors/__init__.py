"""Task executors.

Classes:
    TaskExecutor: Protocol every executor implements.
    ExecutorResult: Outcome of one attempt.
    CommandTaskExecutor: Runs an agent command line per task.
    MockTaskExecutor: Scripted outcomes for dry runs and tests.
"""

from stackweave.core.executors.base import ExecutorResult, TaskExecutor, interrupt_executor
from stackweave.core.executors.command import CommandTaskExecutor, build_prompt
from stackweave.core.executors.mock import MockTaskExecutor

__all__ = [
    "CommandTaskExecutor",
    "ExecutorResult",
    "MockTaskExecutor",
    "TaskExecutor",
    "build_prompt",
    "interrupt_executor",
]
