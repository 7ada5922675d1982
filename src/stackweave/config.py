"""Configuration loading.

Each setting resolves with the priority: explicit argument > environment
variable (``STACKWEAVE_<NAME>``) > config file > default. The config file
is ``STACKWEAVE_CONFIG`` if set, else ``.stackweave.yaml`` in the working
directory when present.

Example ``.stackweave.yaml``::

    trunk: main
    branch_prefix: feature/
    vcs_mode: stacked
    max_retries: 1
    agent_command: claude -p "{prompt}" --permission-mode acceptEdits
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from stackweave.core.types import Strategy, VcsMode
from stackweave.core.validation import validate_branch_prefix

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".stackweave.yaml"
ENV_PREFIX = "STACKWEAVE_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class StackweaveConfig:
    """Resolved settings for a run.

    Attributes:
        trunk: Stack base branch; None means the current branch.
        branch_prefix: Prefix of stack branch names.
        worktree_root: Worktree directory, relative to the repository.
        worktree_branch_prefix: Prefix of temporary worktree branches.
        vcs_mode: "simple", "worktree" or "stacked".
        strategy: Requested strategy; None lets the planner decide.
        max_retries: Failed attempts allowed per task before it stays failed.
        continue_on_error: Keep running after a task fails for good.
        agent_command: Command line run per task.
        task_timeout: Seconds before an agent command is killed.
        max_concurrency: Cap on concurrently running tasks per layer.
        cleanup_on_success: Remove worktrees after a clean run.
        cleanup_on_failure: Remove worktrees after a failed run.
        draft: Submit pull requests as drafts.
        git_binary: git executable.
        spice_binary: git-spice executable.
    """

    trunk: str | None = None
    branch_prefix: str = "stackweave/"
    worktree_root: str = ".stackweave/worktrees"
    worktree_branch_prefix: str = "tmp-stackweave/"
    vcs_mode: str = VcsMode.SIMPLE.value
    strategy: str | None = None
    max_retries: int = 2
    continue_on_error: bool = False
    agent_command: str | None = None
    task_timeout: float = 1800.0
    max_concurrency: int | None = None
    cleanup_on_success: bool = True
    cleanup_on_failure: bool = False
    draft: bool = True
    git_binary: str = "git"
    spice_binary: str = "gs"

    def __post_init__(self) -> None:
        VcsMode(self.vcs_mode)
        if self.strategy is not None:
            Strategy(self.strategy)
        validate_branch_prefix(self.branch_prefix)
        validate_branch_prefix(self.worktree_branch_prefix)
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    @property
    def vcs(self) -> VcsMode:
        return VcsMode(self.vcs_mode)

    @property
    def requested_strategy(self) -> Strategy | None:
        return Strategy(self.strategy) if self.strategy else None


def _read_file(path: str | Path | None) -> dict[str, Any]:
    if path is None:
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            path = env_path
        elif Path(DEFAULT_CONFIG_FILE).is_file():
            path = DEFAULT_CONFIG_FILE
        else:
            return {}

    content = Path(path).read_text()
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def _convert(value: Any, default: Any, name: str) -> Any:
    """Coerce env/file values to the type of the field's default."""
    if value is None:
        return None
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"Invalid boolean for {name}: {value!r}")
    if isinstance(default, int) or name == "max_concurrency":
        return int(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


def load_config(path: str | Path | None = None, **overrides: Any) -> StackweaveConfig:
    """Resolve configuration.

    Args:
        path: Config file. Defaults to STACKWEAVE_CONFIG or .stackweave.yaml.
        **overrides: Explicit values; None means "not given".

    Returns:
        The resolved configuration.

    Raises:
        ValueError: A value is invalid or a key is unknown to the dataclass.
        FileNotFoundError: An explicitly named config file does not exist.
    """
    file_config = _read_file(path)
    known = {f.name: f for f in fields(StackweaveConfig)}

    unknown = set(file_config) - set(known)
    if unknown:
        logger.warning("ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
    bad_overrides = set(overrides) - set(known)
    if bad_overrides:
        raise ValueError(f"Unknown config options: {', '.join(sorted(bad_overrides))}")

    defaults = StackweaveConfig.__dataclass_fields__
    values: dict[str, Any] = {}
    for name in known:
        default = defaults[name].default
        if overrides.get(name) is not None:
            values[name] = overrides[name]
            continue
        env_val = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if env_val:
            values[name] = _convert(env_val, default, name)
            continue
        if file_config.get(name) is not None:
            values[name] = _convert(file_config[name], default, name)
    return StackweaveConfig(**values)
