"""Stacking engine: turns per-task worktree commits into a branch stack.

Each task runs in its own worktree. Once it succeeds, its commit gets a
branch in the main repository whose parent is the branch of the task's
last-declared dependency (or trunk), so the resulting chain of branches
mirrors the dependency order.

Branch names can collide with existing branches. A collision is
resolved by appending a suffix, and the *actual* name is what gets
registered and handed to every later task as its parent. Tasks stacked
on top of a collided branch must never see the requested name.

Example:
    >>> engine = StackingEngine(git=GitClient(), spice=GitSpiceClient(), trunk="main")
    >>> ctx = await engine.create_worktree(task, "/repo")
    >>> # ... executor runs inside ctx.worktree_path ...
    >>> branch = await engine.add_task_to_stack(task, "/repo", ctx)
    >>> branch.name, branch.parent_branch_name
    ('stackweave/task-a', 'main')
"""

from __future__ import annotations

import asyncio
import logging
import string
import textwrap
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from stackweave.core.errors import ExternalToolError, StackTrackingError, WorktreeError
from stackweave.core.run_logging import log_info, log_warning
from stackweave.core.types import ExecutionTask, StackBranch, Task, WorktreeContext
from stackweave.core.validation import validate_branch_prefix
from stackweave.core.vcs.git import GitClient, PathLike
from stackweave.core.vcs.spice import GitSpiceClient
from stackweave.core.vcs.worktrees import WorktreeManager

logger = logging.getLogger(__name__)

DEFAULT_BRANCH_PREFIX = "stackweave/"
DEFAULT_TRUNK = "main"

_BASE36 = string.digits + string.ascii_lowercase

# git config key holding the trunk git-spice was initialized with
SPICE_TRUNK_KEY = "spice.trunk"

_last_suffix_value = 0


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def next_collision_suffix() -> str:
    """Time-derived base36 token, strictly increasing within the process."""
    global _last_suffix_value
    value = max(int(time.time() * 1000), _last_suffix_value + 1)
    _last_suffix_value = value
    return _to_base36(value)


def generate_commit_message(task: Task | ExecutionTask, files: Sequence[str] = ()) -> str:
    """Commit message for a task's changes.

    Subject is the task title, followed by the wrapped description,
    the changed files (up to 20), and a ``Task:`` trailer.
    """
    spec = task.task if isinstance(task, ExecutionTask) else task
    subject = spec.title.strip().splitlines()[0] if spec.title.strip() else spec.id
    if len(subject) > 72:
        subject = subject[:69].rstrip() + "..."

    parts = [subject]
    description = spec.description.strip()
    if description and description != subject:
        parts.append("\n".join(textwrap.wrap(description, width=72)))
    if files:
        listed = [f"- {f}" for f in files[:20]]
        if len(files) > 20:
            listed.append(f"- ... and {len(files) - 20} more")
        parts.append("Files:\n" + "\n".join(listed))
    parts.append(f"Task: {spec.id}")
    return "\n\n".join(parts)


@dataclass
class StackingEngine:
    """Builds worktrees, harvests commits and registers stacked branches.

    Attributes:
        git: Git primitive adapter.
        spice: Stacking CLI. Without it, branches are plain git branches
            and parent tracking exists only in this engine's registry.
        worktrees: Worktree manager; defaults to one sharing ``git``.
        branch_prefix: Prefix for stack branch names.
        trunk: Branch the first layer of the stack is rooted on.
    """

    git: GitClient = field(default_factory=GitClient)
    spice: GitSpiceClient | None = None
    worktrees: WorktreeManager | None = None
    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    trunk: str = DEFAULT_TRUNK
    _branches: dict[str, StackBranch] = field(default_factory=dict, init=False, repr=False)
    # One lock per repository; branch create/track must never interleave
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        validate_branch_prefix(self.branch_prefix)
        if self.worktrees is None:
            self.worktrees = WorktreeManager(git=self.git)

    # -------------------------------------------------------------------------
    # Registry
    # -------------------------------------------------------------------------

    @property
    def branches(self) -> list[StackBranch]:
        """Registered branches in registration order."""
        return list(self._branches.values())

    def branch_for(self, task_id: str) -> StackBranch | None:
        return self._branches.get(task_id)

    def reset(self) -> None:
        """Forget registered branches and repository locks before a new run."""
        self._branches.clear()
        self._locks.clear()

    def repo_lock(self, repo_path: PathLike) -> asyncio.Lock:
        """Lock serializing metadata mutations on one repository."""
        key = str(Path(repo_path).resolve())
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def parent_branch(self, task: Task | ExecutionTask) -> str:
        """Branch a task stacks on.

        The branch of the last dependency in ``requires`` that already
        has one, else trunk. Other dependencies gate readiness only.
        """
        parent = self.trunk
        for dep_id in task.requires:
            branch = self._branches.get(dep_id)
            if branch is not None:
                parent = branch.name
        return parent

    def requested_branch_name(self, task_id: str) -> str:
        return f"{self.branch_prefix}{task_id}"

    # -------------------------------------------------------------------------
    # Worktrees
    # -------------------------------------------------------------------------

    async def create_worktrees_for_tasks(
        self,
        tasks: Sequence[ExecutionTask],
        base_ref: str,
        repo_path: PathLike,
    ) -> list[WorktreeContext]:
        assert self.worktrees is not None
        return await self.worktrees.create_worktrees_for_tasks(tasks, base_ref, repo_path)

    async def create_worktree(self, task: ExecutionTask, repo_path: PathLike) -> WorktreeContext:
        """Worktree for one task, based on its resolved parent branch."""
        assert self.worktrees is not None
        return await self.worktrees.create_worktree(task, self.parent_branch(task), repo_path)

    async def fetch_worktree_commits(
        self,
        tasks: Iterable[ExecutionTask],
        repo_path: PathLike,
    ) -> list[str]:
        assert self.worktrees is not None
        return await self.worktrees.fetch_worktree_commits(tasks, repo_path)

    async def cleanup_worktrees(
        self,
        contexts: Sequence[WorktreeContext],
        repo_path: PathLike,
    ) -> list[str]:
        assert self.worktrees is not None
        return await self.worktrees.cleanup_worktrees(contexts, repo_path)

    # -------------------------------------------------------------------------
    # Commits and branches
    # -------------------------------------------------------------------------

    async def harvest_commit(self, task: ExecutionTask, context: WorktreeContext) -> str:
        """Commit a task's work inside its worktree and record the hash.

        Leftover uncommitted changes are committed. If the executor made
        no commit and left no changes, an empty commit keeps the stack
        continuous.

        Raises:
            WorktreeError: If git cannot read or commit the worktree.
        """
        workdir = context.worktree_path
        try:
            files = await self.git.changed_files(workdir)
            if files:
                await self.git.add_all(workdir)
                commit = await self.git.commit(generate_commit_message(task, files), workdir)
            else:
                commit = await self.git.head(workdir)
                if context.base_commit is not None and commit == context.base_commit:
                    commit = await self.git.commit(
                        generate_commit_message(task), workdir, allow_empty=True
                    )
        except ExternalToolError as e:
            raise WorktreeError(f"Failed to commit task '{task.id}': {e}", task_id=task.id) from e

        task.commit_hash = commit
        if files:
            task.files_changed = list(files)
        log_info(logger, task.id, "commit_harvested", commit=commit[:12], files=len(files))
        return commit

    async def resolve_branch_name(self, name: str, repo_path: PathLike) -> str:
        """``name`` if free, else ``<name>-<suffix>`` with a fresh suffix."""
        if not await self.git.branch_exists(name, repo_path):
            return name
        while True:
            candidate = f"{name}-{next_collision_suffix()}"
            if not await self.git.branch_exists(candidate, repo_path):
                return candidate

    async def create_stacked_branch(
        self,
        name: str,
        commit: str,
        parent: str,
        repo_path: PathLike,
        task_id: str = "",
    ) -> str:
        """Create a branch at ``commit`` stacked on ``parent``.

        Serialized per repository.

        Returns:
            The actual branch name, suffixed if ``name`` was taken.

        Raises:
            StackTrackingError: Branch creation or tracking failed.
                ``branch_name`` is set if the branch exists untracked.
        """
        async with self.repo_lock(repo_path):
            try:
                actual = await self.resolve_branch_name(name, repo_path)
                await self.git.create_branch(actual, commit, repo_path)
            except ExternalToolError as e:
                raise StackTrackingError(
                    f"Failed to create branch '{name}': {e}", task_id=task_id, commit_hash=commit
                ) from e

            if actual != name:
                log_warning(logger, task_id or actual, "branch_collision", requested=name, actual=actual)

            if self.spice is not None:
                try:
                    await self.spice.branch_track(actual, parent, repo_path)
                except ExternalToolError as e:
                    raise StackTrackingError(
                        f"Branch '{actual}' created but not tracked on '{parent}': {e}",
                        task_id=task_id,
                        commit_hash=commit,
                        branch_name=actual,
                    ) from e

        log_info(logger, task_id or actual, "branch_created", branch=actual, parent=parent)
        return actual

    def _register(self, task: ExecutionTask, name: str, parent: str, commit: str) -> StackBranch:
        branch = StackBranch(name=name, parent_branch_name=parent, task_id=task.id, commit_hash=commit)
        self._branches[task.id] = branch
        task.branch_name = name
        return branch

    async def add_task_to_stack(
        self,
        task: ExecutionTask,
        repo_path: PathLike,
        context: WorktreeContext,
    ) -> StackBranch:
        """Register a successful task's commit as a stacked branch.

        Commits first if ``harvest_commit`` has not run yet, then makes
        the commit reachable from the main repository and creates the
        branch on the task's parent.

        Returns:
            The registered branch; its ``name`` is authoritative.

        Raises:
            WorktreeError: The commit could not be made.
            StackTrackingError: The branch could not be created or tracked.
        """
        commit = task.commit_hash or await self.harvest_commit(task, context)
        for warning in await self.fetch_worktree_commits([task], repo_path):
            log_warning(logger, task.id, "commit_unreachable", detail=warning)

        parent = self.parent_branch(task)
        requested = self.requested_branch_name(task.id)
        try:
            actual = await self.create_stacked_branch(requested, commit, parent, repo_path, task.id)
        except StackTrackingError as e:
            if e.branch_name:
                self._register(task, e.branch_name, parent, commit)
            raise
        return self._register(task, actual, parent, commit)

    # -------------------------------------------------------------------------
    # Stack maintenance
    # -------------------------------------------------------------------------

    async def initialize(self, repo_path: PathLike, trunk: str | None = None) -> str:
        """Configure the stacking CLI's trunk unless one is already set.

        Only ever called on explicit opt-in. On a repository git-spice
        already manages, nothing is initialized: the trunk git-spice was
        set up with is adopted when it can be read, otherwise the
        engine's trunk is left as it is.

        Returns:
            The trunk in effect.

        Raises:
            ExternalToolError: ``gs repo init`` failed.
        """
        if self.spice is not None:
            configured = await self.git.config_get(SPICE_TRUNK_KEY, repo_path)
            if configured:
                self.trunk = configured
                log_info(logger, "stack", "already_initialized", repo=repo_path, trunk=configured)
                return self.trunk
            if await self.spice.is_initialized(repo_path):
                log_info(logger, "stack", "already_initialized", repo=repo_path, trunk=self.trunk)
                return self.trunk

        if trunk:
            self.trunk = trunk
        elif (current := await self.git.current_branch(repo_path)) is not None:
            self.trunk = current

        if self.spice is None:
            return self.trunk

        await self.spice.repo_init(self.trunk, repo_path)
        log_info(logger, "stack", "initialized", repo=repo_path, trunk=self.trunk)
        return self.trunk

    def _root_branches(self) -> list[StackBranch]:
        return [b for b in self._branches.values() if b.parent_branch_name == self.trunk]

    async def restack(self, repo_path: PathLike) -> list[str]:
        """Rebase every tracked branch onto its parent's current tip.

        Returns:
            Warnings for roots whose restack failed. Never raises for a
            failed restack; the branches stay as they are.
        """
        if self.spice is None:
            return []

        warnings: list[str] = []
        async with self.repo_lock(repo_path):
            for root in self._root_branches():
                try:
                    await self.spice.upstack_restack(root.name, repo_path)
                except ExternalToolError as e:
                    log_warning(logger, root.task_id, "restack_failed", branch=root.name, error=e)
                    warnings.append(f"Restack of '{root.name}' failed: {e}")
        return warnings

    async def submit_stack(self, repo_path: PathLike, draft: bool = True) -> list[str]:
        """Open pull requests for every stack rooted on trunk.

        Returns:
            Pull request URLs.

        Raises:
            ExternalToolError: Submission failed.
        """
        if self.spice is None:
            return []

        urls: list[str] = []
        async with self.repo_lock(repo_path):
            for root in self._root_branches():
                urls.extend(await self.spice.upstack_submit(root.name, repo_path, draft=draft))
        return list(dict.fromkeys(urls))
