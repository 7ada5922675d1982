"""Task execution: state machine, strategies and orchestration.

Classes:
    TaskStateMachine: Legal transitions, retries and dependent propagation.
    ExecutionOrchestrator: Plans, selects a strategy, runs and aggregates.
    ExecutionContext: Per-run options.
    ExecutionObserver: Observer protocol for state changes and events.
    CancellationToken: Cooperative cancellation.
"""

from stackweave.core.execution.cancellation import CancellationToken
from stackweave.core.execution.context import ExecutionContext, ExecutionRun
from stackweave.core.execution.events import (
    ExecutionEvent,
    ExecutionObserver,
    LoggingObserver,
    ObserverSet,
)
from stackweave.core.execution.orchestrator import ExecutionOrchestrator
from stackweave.core.execution.state_machine import (
    VALID_TRANSITIONS,
    TaskStateMachine,
    is_valid_transition,
)

__all__ = [
    "VALID_TRANSITIONS",
    "CancellationToken",
    "ExecutionContext",
    "ExecutionEvent",
    "ExecutionObserver",
    "ExecutionOrchestrator",
    "ExecutionRun",
    "LoggingObserver",
    "ObserverSet",
    "TaskStateMachine",
    "is_valid_transition",
]
