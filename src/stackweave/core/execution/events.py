"""Execution events and the observer interface.

Observers are injected into the orchestrator and state machine; there is
no global event bus. An observer that raises is logged and ignored so
progress reporting can never break a run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Protocol, runtime_checkable

from stackweave.core.run_logging import log_info, log_warning
from stackweave.core.types import ExecutionTask, TaskState, Transition

logger = logging.getLogger(__name__)

EventType = Literal[
    "plan_start",
    "plan_complete",
    "layer_start",
    "layer_complete",
    "task_start",
    "task_complete",
    "task_fail",
    "task_retry",
    "task_skip",
    "branch_created",
    "stack_warning",
    "progress_update",
]


@dataclass
class ExecutionEvent:
    """Event emitted while a plan executes.

    Attributes:
        event_type: Type of event.
        plan_id: The plan being executed.
        task_id: Task the event relates to, if any.
        data: Event-specific payload.
        timestamp: When the event occurred.
    """

    event_type: EventType
    plan_id: str
    task_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


@runtime_checkable
class ExecutionObserver(Protocol):
    """Receives task state changes and execution events."""

    def on_task_state_change(self, task: ExecutionTask, transition: Transition) -> None: ...

    def on_execution_event(self, event: ExecutionEvent) -> None: ...


class ObserverSet:
    """Fans notifications out to a list of observers."""

    def __init__(self, observers: Iterable[ExecutionObserver] = ()) -> None:
        self._observers: list[ExecutionObserver] = list(observers)

    def add(self, observer: ExecutionObserver) -> None:
        self._observers.append(observer)

    def __len__(self) -> int:
        return len(self._observers)

    def on_task_state_change(self, task: ExecutionTask, transition: Transition) -> None:
        for observer in self._observers:
            try:
                observer.on_task_state_change(task, transition)
            except Exception:
                logger.exception("observer %r failed on state change of %s", observer, task.id)

    def on_execution_event(self, event: ExecutionEvent) -> None:
        for observer in self._observers:
            try:
                observer.on_execution_event(event)
            except Exception:
                logger.exception("observer %r failed on %s event", observer, event.event_type)


class LoggingObserver:
    """Writes state changes and events as run-log lines."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._logger = log or logging.getLogger("stackweave.run")

    def on_task_state_change(self, task: ExecutionTask, transition: Transition) -> None:
        fields: dict[str, Any] = {
            "from": transition.from_state.value,
            "to": transition.to_state.value,
        }
        if transition.reason:
            fields["reason"] = transition.reason
        if transition.to_state is TaskState.FAILED:
            log_warning(self._logger, task.id, "state_change", **fields)
        else:
            log_info(self._logger, task.id, "state_change", **fields)

    def on_execution_event(self, event: ExecutionEvent) -> None:
        identifier = event.task_id or event.plan_id
        if event.event_type in ("task_fail", "stack_warning"):
            log_warning(self._logger, identifier, event.event_type, **event.data)
        else:
            log_info(self._logger, identifier, event.event_type, **event.data)
