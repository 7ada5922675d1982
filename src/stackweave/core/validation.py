"""Name validation for task ids and branch names."""

from __future__ import annotations

import re

# Letters, digits, dot, underscore and dash; must start alphanumeric
TASK_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

MAX_TASK_ID_LENGTH = 64

# Sequences git refuses in ref names (see git-check-ref-format)
_FORBIDDEN_REF_PARTS = ("..", "@{", "//", "/.", ".lock/")
_FORBIDDEN_REF_CHARS = re.compile(r"[\x00-\x20~^:?*\[\\\x7f]")


def validate_task_id(task_id: str) -> None:
    """Validate a task id.

    Task ids end up inside branch and directory names, so they are kept
    to a filesystem- and ref-safe alphabet.

    Raises:
        ValueError: If the id is invalid.

    Example:
        >>> validate_task_id("task-1")        # OK
        >>> validate_task_id("auth.login_v2") # OK
        >>> validate_task_id("-bad")          # ValueError
        >>> validate_task_id("has space")     # ValueError
    """
    if not task_id:
        raise ValueError("Task id is required")

    if len(task_id) > MAX_TASK_ID_LENGTH:
        raise ValueError(f"Task id must be {MAX_TASK_ID_LENGTH} characters or less: {task_id!r}")

    if not TASK_ID_PATTERN.match(task_id):
        raise ValueError(
            f"Task id must be alphanumeric with '.', '_' or '-', "
            f"and start with a letter or digit: {task_id!r}"
        )


def is_valid_branch_name(name: str) -> bool:
    """Check a branch name against git's ref-format rules (simplified)."""
    if not name or name.startswith(("/", "-", ".")) or name.endswith(("/", ".", ".lock")):
        return False
    if name == "@":
        return False
    if _FORBIDDEN_REF_CHARS.search(name):
        return False
    return not any(part in name for part in _FORBIDDEN_REF_PARTS)


def validate_branch_prefix(prefix: str) -> None:
    """Validate a branch prefix such as "stackweave/".

    Raises:
        ValueError: If ``<prefix>x`` would not be a valid branch name.
    """
    if not is_valid_branch_name(f"{prefix}x"):
        raise ValueError(f"Invalid branch prefix: {prefix!r}")
