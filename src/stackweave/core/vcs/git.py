"""Git primitive adapter.

Thin async wrappers over plain ``git`` invocations. No stacking logic
lives here; see ``stackweave.core.vcs.stacking`` for that.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from stackweave.core.vcs.commands import (
    MUTATION_TIMEOUT,
    QUERY_TIMEOUT,
    CommandResult,
    CommandRunner,
)

PathLike = str | os.PathLike[str]


@dataclass
class GitClient:
    """Runs git commands through a ``CommandRunner``.

    Example:
        >>> git = GitClient()
        >>> await git.branch_exists("main", "/repo")
        True
        >>> await git.create_branch("feature/x", "HEAD", "/repo")
    """

    runner: CommandRunner = field(default_factory=CommandRunner)
    binary: str = "git"

    async def _git(
        self,
        cwd: PathLike,
        *args: str,
        timeout: float = MUTATION_TIMEOUT,
        check: bool = True,
    ) -> CommandResult:
        return await self.runner.run([self.binary, *args], cwd=cwd, timeout=timeout, check=check)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def rev_parse(self, ref: str, cwd: PathLike) -> str:
        result = await self._git(cwd, "rev-parse", ref, timeout=QUERY_TIMEOUT)
        return result.stdout.strip()

    async def head(self, cwd: PathLike) -> str:
        return await self.rev_parse("HEAD", cwd)

    async def current_branch(self, cwd: PathLike) -> str | None:
        """Name of the checked-out branch, or None on a detached HEAD."""
        result = await self._git(
            cwd, "symbolic-ref", "--quiet", "--short", "HEAD", timeout=QUERY_TIMEOUT, check=False
        )
        name = result.stdout.strip()
        return name if result.ok and name else None

    async def branch_exists(self, name: str, cwd: PathLike) -> bool:
        result = await self._git(
            cwd,
            "rev-parse",
            "--verify",
            "--quiet",
            f"refs/heads/{name}",
            timeout=QUERY_TIMEOUT,
            check=False,
        )
        return result.ok

    async def list_branches(self, cwd: PathLike) -> list[str]:
        result = await self._git(
            cwd, "for-each-ref", "--format=%(refname:short)", "refs/heads", timeout=QUERY_TIMEOUT
        )
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    async def object_exists(self, commit: str, cwd: PathLike) -> bool:
        """Whether a commit is reachable from this repository's object store."""
        result = await self._git(
            cwd, "cat-file", "-e", f"{commit}^{{commit}}", timeout=QUERY_TIMEOUT, check=False
        )
        return result.ok

    async def changed_files(self, cwd: PathLike) -> list[str]:
        """Paths with uncommitted changes, including untracked files."""
        result = await self._git(cwd, "status", "--porcelain", timeout=QUERY_TIMEOUT)
        files = []
        for line in result.stdout.splitlines():
            if len(line) > 3:
                path = line[3:]
                # Renames are reported as "old -> new"
                if " -> " in path:
                    path = path.split(" -> ", 1)[1]
                files.append(path.strip('"'))
        return files

    async def has_changes(self, cwd: PathLike) -> bool:
        return bool(await self.changed_files(cwd))

    async def config_get(self, key: str, cwd: PathLike) -> str | None:
        result = await self._git(cwd, "config", "--get", key, timeout=QUERY_TIMEOUT, check=False)
        value = result.stdout.strip()
        return value if result.ok and value else None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def checkout(self, ref: str, cwd: PathLike) -> None:
        await self._git(cwd, "checkout", ref)

    async def create_branch(self, name: str, start_point: str, cwd: PathLike) -> None:
        await self._git(cwd, "branch", name, start_point)

    async def delete_branch(self, name: str, cwd: PathLike, force: bool = True) -> None:
        await self._git(cwd, "branch", "-D" if force else "-d", name)

    async def add_all(self, cwd: PathLike) -> None:
        await self._git(cwd, "add", "-A")

    async def commit(self, message: str, cwd: PathLike, allow_empty: bool = False) -> str:
        """Commit the index and return the new commit hash."""
        args = ["commit", "-m", message]
        if allow_empty:
            args.append("--allow-empty")
        await self._git(cwd, *args)
        return await self.head(cwd)

    async def cherry_pick(self, commit: str, cwd: PathLike) -> None:
        await self._git(cwd, "cherry-pick", commit)

    async def fetch(self, source: str, refspec: str, cwd: PathLike) -> None:
        await self._git(cwd, "fetch", source, refspec)

    # -------------------------------------------------------------------------
    # Worktrees
    # -------------------------------------------------------------------------

    async def worktree_add(self, path: PathLike, branch: str, base_ref: str, cwd: PathLike) -> None:
        await self._git(cwd, "worktree", "add", "-b", branch, str(path), base_ref)

    async def worktree_remove(self, path: PathLike, cwd: PathLike, force: bool = True) -> None:
        args = ["worktree", "remove", str(path)]
        if force:
            args.append("--force")
        await self._git(cwd, *args)

    async def worktree_prune(self, cwd: PathLike) -> None:
        await self._git(cwd, "worktree", "prune")

    async def worktree_list(self, cwd: PathLike) -> list[str]:
        """Paths of all registered worktrees, the main one included."""
        result = await self._git(cwd, "worktree", "list", "--porcelain", timeout=QUERY_TIMEOUT)
        return [
            line[len("worktree ") :]
            for line in result.stdout.splitlines()
            if line.startswith("worktree ")
        ]
