"""Per-task isolated worktrees.

Each task gets its own working directory backed by the main
repository's object store, so concurrent tasks never write to the same
files. Commits made in a worktree live on a temporary branch until the
stacking engine promotes them into the stack.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from stackweave.core.errors import ExternalToolError, WorktreeError
from stackweave.core.run_logging import log_info, log_warning
from stackweave.core.types import ExecutionTask, WorktreeContext
from stackweave.core.vcs.git import GitClient, PathLike

logger = logging.getLogger(__name__)

DEFAULT_WORKTREE_ROOT = ".stackweave/worktrees"
DEFAULT_WORKTREE_BRANCH_PREFIX = "tmp-stackweave/"


def worktree_remote_name(task_id: str) -> str:
    return f"worktree-{task_id}"


@dataclass
class WorktreeManager:
    """Creates, harvests and removes task worktrees.

    Worktrees live at ``<repo>/<root>/<task-id>`` on branch
    ``<branch_prefix><task-id>``.
    """

    git: GitClient = field(default_factory=GitClient)
    root: str = DEFAULT_WORKTREE_ROOT
    branch_prefix: str = DEFAULT_WORKTREE_BRANCH_PREFIX

    def worktree_path(self, task_id: str, repo_path: PathLike) -> Path:
        return Path(repo_path) / self.root / task_id

    def branch_name(self, task_id: str) -> str:
        return f"{self.branch_prefix}{task_id}"

    async def _remove_stale(self, path: Path, branch: str, repo_path: PathLike) -> None:
        registered = {Path(p).resolve() for p in await self.git.worktree_list(repo_path)}
        if path.resolve() in registered or path.exists():
            try:
                await self.git.worktree_remove(path, repo_path, force=True)
            except ExternalToolError:
                # Not a registered worktree, just a leftover directory
                shutil.rmtree(path, ignore_errors=True)
                await self.git.worktree_prune(repo_path)
            log_info(logger, path.name, "stale_worktree_removed", path=path)

        if await self.git.branch_exists(branch, repo_path):
            await self.git.delete_branch(branch, repo_path, force=True)

    async def create_worktree(
        self,
        task: ExecutionTask,
        base_ref: str,
        repo_path: PathLike,
    ) -> WorktreeContext:
        """Create a fresh worktree for one task checked out at ``base_ref``.

        Raises:
            WorktreeError: If git cannot create the worktree.
        """
        path = self.worktree_path(task.id, repo_path)
        branch = self.branch_name(task.id)
        try:
            await self._remove_stale(path, branch, repo_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            base_commit = await self.git.rev_parse(base_ref, repo_path)
            await self.git.worktree_add(path, branch, base_commit, repo_path)
        except (ExternalToolError, OSError) as e:
            raise WorktreeError(
                f"Failed to create worktree for task '{task.id}' at {path}: {e}",
                task_id=task.id,
            ) from e

        log_info(logger, task.id, "worktree_created", path=path, branch=branch, base=base_ref)
        return WorktreeContext(
            task_id=task.id,
            worktree_path=str(path),
            branch_name=branch,
            base_ref=base_ref,
            base_commit=base_commit,
        )

    async def create_worktrees_for_tasks(
        self,
        tasks: Sequence[ExecutionTask],
        base_ref: str,
        repo_path: PathLike,
    ) -> list[WorktreeContext]:
        """Create one worktree per task, all at ``base_ref``.

        Sequential on purpose: ``git worktree add`` writes the shared
        repository's metadata.
        """
        contexts = []
        for task in tasks:
            contexts.append(await self.create_worktree(task, base_ref, repo_path))
        return contexts

    async def fetch_worktree_commits(
        self,
        tasks: Iterable[ExecutionTask],
        repo_path: PathLike,
    ) -> list[str]:
        """Make commits made inside worktrees reachable from the main repo.

        Tasks without a commit hash, or whose commit is already
        reachable, are skipped. Failures are logged per task and never
        stop the others.

        Returns:
            Warning messages for tasks whose commit could not be fetched.
        """
        warnings: list[str] = []
        for task in tasks:
            if not task.commit_hash:
                continue
            if await self.git.object_exists(task.commit_hash, repo_path):
                continue

            source = str(self.worktree_path(task.id, repo_path))
            remote = worktree_remote_name(task.id)
            try:
                await self.git.fetch(source, f"+refs/heads/*:refs/remotes/{remote}/*", repo_path)
                continue
            except ExternalToolError as e:
                log_warning(logger, task.id, "worktree_fetch_failed", error=e)

            branch = self.branch_name(task.id)
            try:
                await self.git.fetch(source, f"+{branch}:refs/remotes/{remote}/{branch}", repo_path)
            except ExternalToolError as e:
                message = f"Could not fetch commit {task.commit_hash[:12]} for task '{task.id}': {e}"
                log_warning(logger, task.id, "worktree_branch_fetch_failed", error=e)
                warnings.append(message)
        return warnings

    async def remove_worktree(self, context: WorktreeContext, repo_path: PathLike) -> None:
        """Remove one worktree and its temporary branch.

        Raises:
            WorktreeError: If the worktree could not be removed.
        """
        try:
            await self.git.worktree_remove(context.worktree_path, repo_path, force=True)
            if await self.git.branch_exists(context.branch_name, repo_path):
                await self.git.delete_branch(context.branch_name, repo_path, force=True)
        except ExternalToolError as e:
            raise WorktreeError(
                f"Failed to remove worktree {context.worktree_path}: {e}", task_id=context.task_id
            ) from e

    async def cleanup_worktrees(
        self,
        contexts: Sequence[WorktreeContext],
        repo_path: PathLike,
    ) -> list[str]:
        """Remove worktrees, best effort.

        Returns:
            Warning messages for worktrees that could not be removed.
        """
        warnings: list[str] = []
        for ctx in contexts:
            try:
                await self.remove_worktree(ctx, repo_path)
            except WorktreeError as e:
                log_warning(logger, ctx.task_id, "worktree_cleanup_failed", error=e)
                warnings.append(str(e))

        try:
            await self.git.worktree_prune(repo_path)
        except ExternalToolError as e:
            log_warning(logger, "worktrees", "worktree_prune_failed", error=e)
        return warnings
