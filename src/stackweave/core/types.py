"""Data types for stackweave.core.

Plain dataclasses and enums shared by the planner, the state machine,
the strategies and the stacking engine.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TaskState(Enum):
    """Task lifecycle states."""

    PENDING = "pending"
    READY = "ready"
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        """Whether the state ends a task's run (failed tasks may still retry)."""
        return self in (TaskState.COMPLETED, TaskState.FAILED, TaskState.SKIPPED)


class Strategy(Enum):
    """Execution strategies a plan can be built for."""

    SERIAL = "serial"
    PARALLEL = "parallel"
    HYBRID = "hybrid"
    WORKTREE = "worktree"


class PlanStatus(Enum):
    """Overall plan lifecycle."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class VcsMode(Enum):
    """How task changes reach version control."""

    SIMPLE = "simple"  # run in the repo directory, no branch management
    WORKTREE = "worktree"  # isolated worktrees, plain git branches
    STACKED = "stacked"  # isolated worktrees tracked by the stacking CLI


class ExecutionMode(Enum):
    """What the executor is asked to do with a task."""

    EXECUTE = "execute"
    PLAN = "plan"
    VALIDATE = "validate"


@dataclass(frozen=True)
class Task:
    """A unit of work in the dependency graph.

    Attributes:
        id: Unique task id.
        title: Short human-readable title.
        description: Longer description, used in commit messages.
        requires: Ids of tasks that must complete first, in declaration order.
        agent_prompt: Prompt handed to the task executor.
        touches: Files the task is expected to modify.
        produces: Files the task is expected to create.
        estimated_size: Relative cost used for planning estimates.
    """

    id: str
    title: str = ""
    description: str = ""
    requires: tuple[str, ...] = ()
    agent_prompt: str = ""
    touches: tuple[str, ...] = ()
    produces: tuple[str, ...] = ()
    estimated_size: float = 1.0

    def __post_init__(self) -> None:
        # Dedupe while keeping declaration order; the last requirement
        # decides the stack parent.
        deduped = tuple(dict.fromkeys(self.requires))
        object.__setattr__(self, "requires", deduped)
        object.__setattr__(self, "touches", tuple(self.touches))
        object.__setattr__(self, "produces", tuple(self.produces))
        if not self.title:
            object.__setattr__(self, "title", self.id)

    @property
    def cost(self) -> float:
        return max(self.estimated_size, 1.0)


@dataclass(frozen=True)
class Transition:
    """One recorded state change."""

    from_state: TaskState
    to_state: TaskState
    timestamp: float = field(default_factory=time.time)
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_state.value,
            "to": self.to_state.value,
            "timestamp": self.timestamp,
            "reason": self.reason,
        }


@dataclass(eq=False)
class ExecutionTask:
    """A task plus its runtime state within one plan.

    The current state is always the target of the last history entry.
    Only the state machine appends to the history.
    """

    task: Task
    max_retries: int = 2
    retry_count: int = 0
    state_history: list[Transition] = field(default_factory=list)
    start_time: float | None = None
    end_time: float | None = None
    duration: float | None = None
    output: str | None = None
    error: str | None = None
    exit_code: int | None = None
    commit_hash: str | None = None
    branch_name: str | None = None
    files_changed: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.state_history:
            self.state_history.append(
                Transition(TaskState.PENDING, TaskState.PENDING, reason="created")
            )

    @property
    def state(self) -> TaskState:
        return self.state_history[-1].to_state

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def title(self) -> str:
        return self.task.title

    @property
    def requires(self) -> tuple[str, ...]:
        return self.task.requires

    @property
    def cost(self) -> float:
        return self.task.cost

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "state": self.state.value,
            "requires": list(self.requires),
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "duration": self.duration,
            "exit_code": self.exit_code,
            "error": self.error,
            "commit_hash": self.commit_hash,
            "branch_name": self.branch_name,
            "history": [t.to_dict() for t in self.state_history],
        }

    def __repr__(self) -> str:
        return f"ExecutionTask(id={self.id!r}, state={self.state.value})"


@dataclass(frozen=True)
class PlanMetrics:
    """Shape and cost figures for a plan."""

    task_count: int
    layer_count: int
    max_parallelization: int
    total_cost: float
    critical_path_cost: float
    estimated_speedup: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_count": self.task_count,
            "layer_count": self.layer_count,
            "max_parallelization": self.max_parallelization,
            "total_cost": self.total_cost,
            "critical_path_cost": self.critical_path_cost,
            "estimated_speedup": round(self.estimated_speedup, 2),
        }


@dataclass
class ExecutionPlan:
    """Layered, strategy-bound plan for one run."""

    id: str
    tasks: dict[str, ExecutionTask]
    execution_layers: list[list[ExecutionTask]]
    strategy: Strategy
    metrics: PlanMetrics
    status: PlanStatus = PlanStatus.PENDING
    created_at: float = field(default_factory=time.time)

    def layer_index(self, task_id: str) -> int:
        for index, layer in enumerate(self.execution_layers):
            if any(t.id == task_id for t in layer):
                return index
        raise KeyError(task_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "strategy": self.strategy.value,
            "status": self.status.value,
            "created_at": self.created_at,
            "layers": [[t.id for t in layer] for layer in self.execution_layers],
            "metrics": self.metrics.to_dict(),
        }


@dataclass(frozen=True)
class WorktreeContext:
    """An isolated working copy allocated to one task."""

    task_id: str
    worktree_path: str
    branch_name: str
    base_ref: str
    base_commit: str | None = None


@dataclass(frozen=True)
class StackBranch:
    """A branch registered in the stack.

    ``name`` is the actual name after collision resolution and the only
    name downstream tasks may use as their parent.
    """

    name: str
    parent_branch_name: str
    task_id: str
    commit_hash: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "parent": self.parent_branch_name,
            "task_id": self.task_id,
            "commit_hash": self.commit_hash,
        }


@dataclass
class ExecutionResult:
    """Aggregate outcome of a run."""

    plan_id: str
    strategy: Strategy
    status: PlanStatus
    tasks: list[ExecutionTask] = field(default_factory=list)
    branches: list[StackBranch] = field(default_factory=list)
    pr_urls: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration: float = 0.0
    estimated_duration: float = 0.0

    def _count(self, state: TaskState) -> int:
        return sum(1 for t in self.tasks if t.state is state)

    @property
    def completed(self) -> int:
        return self._count(TaskState.COMPLETED)

    @property
    def failed(self) -> int:
        return self._count(TaskState.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(TaskState.SKIPPED)

    @property
    def success(self) -> bool:
        return self.status is PlanStatus.COMPLETED

    @property
    def average_task_duration(self) -> float:
        durations = [t.duration for t in self.tasks if t.duration is not None]
        return sum(durations) / len(durations) if durations else 0.0

    @property
    def parallelization_efficiency(self) -> float:
        """Sum of task durations over wall time; above 1 means overlap."""
        busy = sum(t.duration or 0.0 for t in self.tasks)
        return busy / self.duration if self.duration > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan_id": self.plan_id,
            "strategy": self.strategy.value,
            "status": self.status.value,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration": round(self.duration, 3),
            "estimated_duration": self.estimated_duration,
            "average_task_duration": round(self.average_task_duration, 3),
            "parallelization_efficiency": round(self.parallelization_efficiency, 2),
            "branches": [b.to_dict() for b in self.branches],
            "pr_urls": list(self.pr_urls),
            "warnings": list(self.warnings),
            "tasks": [t.to_dict() for t in self.tasks],
        }
