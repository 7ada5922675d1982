"""Structured log lines for plan execution.

Log Format:
    [<identifier>] action: key=value, key=value (duration)

Examples:
    [20261019_143022_x7k] plan_start: tasks=5, strategy=parallel
    [task-a] task_start: attempt=1, workdir=/repo/.stackweave/worktrees/task-a
    [task-a] task_complete: exit_code=0 (12.4s)
    [task-b] branch_collision: requested=stackweave/task-b, actual=stackweave/task-b-lq2k3f
"""

from __future__ import annotations

import logging
import random
import string
import time
from typing import Any


def generate_run_id() -> str:
    """Generate a plan id like "20261019_143022_x7k".

    Second-precision timestamp plus a 3-char random suffix.
    """
    timestamp = time.strftime("%Y%m%d_%H%M%S")
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=3))
    return f"{timestamp}_{suffix}"


def truncate(value: Any, max_length: int = 100) -> str:
    """Truncate a value for logging, noting the original length."""
    s = str(value)
    if len(s) <= max_length:
        return s
    return f"{s[:max_length]}... ({len(s)} chars)"


def _format(identifier: str, action: str, fields: dict[str, Any], suffix: str = "") -> str:
    kv_pairs = ", ".join(f"{k}={truncate(v)}" for k, v in fields.items())
    if kv_pairs and suffix:
        return f"[{identifier}] {action}: {kv_pairs} {suffix}"
    if kv_pairs:
        return f"[{identifier}] {action}: {kv_pairs}"
    if suffix:
        return f"[{identifier}] {action}: {suffix}"
    return f"[{identifier}] {action}"


def log_start(logger: logging.Logger | None, identifier: str, action: str, **kwargs: Any) -> None:
    """Log a start event at DEBUG. No-op without a logger."""
    if logger is None:
        return
    logger.debug(_format(identifier, action, kwargs))


def log_complete(
    logger: logging.Logger | None,
    identifier: str,
    action: str,
    duration_s: float,
    **kwargs: Any,
) -> None:
    """Log a completion event with its duration at DEBUG.

    Args:
        logger: Logger to use. If None, this is a no-op.
        identifier: Plan id or task id.
        action: Action name (e.g., "task_complete", "plan_complete").
        duration_s: Duration in seconds.
        **kwargs: Additional key=value pairs to log.
    """
    if logger is None:
        return
    logger.debug(_format(identifier, action, kwargs, f"({duration_s:.1f}s)"))


def log_error(
    logger: logging.Logger | None,
    identifier: str,
    action: str,
    error: str | Exception,
    **kwargs: Any,
) -> None:
    """Log an error event; the error text is truncated to 200 chars."""
    if logger is None:
        return
    message = _format(identifier, action, kwargs)
    separator = ", " if kwargs else ": "
    logger.error(f"{message}{separator}error={truncate(str(error), max_length=200)}")


def log_warning(logger: logging.Logger | None, identifier: str, action: str, **kwargs: Any) -> None:
    """Log a warning event."""
    if logger is None:
        return
    logger.warning(_format(identifier, action, kwargs))


def log_info(logger: logging.Logger | None, identifier: str, action: str, **kwargs: Any) -> None:
    """Log an info event."""
    if logger is None:
        return
    logger.info(_format(identifier, action, kwargs))
