"""Core - scheduling, state tracking and branch stacking.

Nothing in here knows about the CLI or configuration files; every
collaborator (executor, git, git-spice) is passed in.

Architecture:
    dag/         DependencyGraph and ExecutionPlanner
    execution/   TaskStateMachine, strategies, ExecutionOrchestrator
    vcs/         CommandRunner, GitClient, GitSpiceClient, StackingEngine
    executors/   TaskExecutor protocol and implementations
    types        Data model
    errors       Error taxonomy
"""

from stackweave.core.dag import DependencyGraph, ExecutionPlanner
from stackweave.core.errors import (
    CancelledError,
    CommandTimeoutError,
    CycleDetected,
    ExternalToolError,
    InvalidTransitionError,
    StackTrackingError,
    StackweaveError,
    ValidationError,
    WorktreeError,
)
from stackweave.core.execution import ExecutionContext, ExecutionOrchestrator, TaskStateMachine
from stackweave.core.types import (
    ExecutionPlan,
    ExecutionResult,
    ExecutionTask,
    StackBranch,
    Strategy,
    Task,
    TaskState,
    Transition,
    VcsMode,
    WorktreeContext,
)
from stackweave.core.vcs import StackingEngine

__all__ = [
    "CancelledError",
    "CommandTimeoutError",
    "CycleDetected",
    "DependencyGraph",
    "ExecutionContext",
    "ExecutionOrchestrator",
    "ExecutionPlan",
    "ExecutionPlanner",
    "ExecutionResult",
    "ExecutionTask",
    "ExternalToolError",
    "InvalidTransitionError",
    "StackBranch",
    "StackTrackingError",
    "StackingEngine",
    "StackweaveError",
    "Strategy",
    "Task",
    "TaskState",
    "TaskStateMachine",
    "Transition",
    "ValidationError",
    "VcsMode",
    "WorktreeContext",
    "WorktreeError",
]
