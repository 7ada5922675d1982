"""Version control: command runner, git and git-spice adapters, stacking engine.

Classes:
    CommandRunner: Async subprocess runner with timeouts.
    GitClient: Git primitive adapter.
    GitSpiceClient: git-spice stacking CLI adapter.
    WorktreeManager: Per-task isolated worktrees.
    StackingEngine: Reconciles worktree commits into a branch stack.
"""

from stackweave.core.vcs.commands import CommandResult, CommandRunner
from stackweave.core.vcs.git import GitClient
from stackweave.core.vcs.spice import GitSpiceClient, extract_pr_urls
from stackweave.core.vcs.stacking import StackingEngine, generate_commit_message
from stackweave.core.vcs.worktrees import WorktreeManager

__all__ = [
    "CommandResult",
    "CommandRunner",
    "GitClient",
    "GitSpiceClient",
    "StackingEngine",
    "WorktreeManager",
    "extract_pr_urls",
    "generate_commit_message",
]
