"""Adapter for the git-spice stacking CLI (``gs``).

git-spice records each tracked branch's base so it can restack and
submit a whole chain of branches. All calls pass ``--no-prompt`` so a
missing answer fails fast instead of hanging on stdin.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field

from stackweave.core.errors import ExternalToolError
from stackweave.core.vcs.commands import (
    MUTATION_TIMEOUT,
    QUERY_TIMEOUT,
    RESTACK_TIMEOUT,
    SUBMIT_TIMEOUT,
    CommandResult,
    CommandRunner,
)

logger = logging.getLogger(__name__)

PR_URL_PATTERN = re.compile(r"https://github\.com/\S+/pull/\d+")

# git-spice keeps its repository state under this ref
SPICE_DATA_REF = "refs/spice/data"

PathLike = str | os.PathLike[str]


def extract_pr_urls(output: str) -> list[str]:
    """Pull request URLs mentioned in command output, deduplicated in order."""
    return list(dict.fromkeys(PR_URL_PATTERN.findall(output)))


@dataclass
class GitSpiceClient:
    """Runs ``gs`` subcommands.

    Example:
        >>> gs = GitSpiceClient()
        >>> await gs.repo_init("main", "/repo")
        >>> await gs.branch_track("stackweave/task-a", "main", "/repo")
        >>> await gs.upstack_restack("stackweave/task-a", "/repo")
    """

    runner: CommandRunner = field(default_factory=CommandRunner)
    binary: str = "gs"
    git_binary: str = "git"

    async def _gs(self, cwd: PathLike, *args: str, timeout: float = MUTATION_TIMEOUT) -> CommandResult:
        return await self.runner.run([self.binary, "--no-prompt", *args], cwd=cwd, timeout=timeout)

    async def is_available(self) -> bool:
        try:
            await self.runner.run([self.binary, "--version"], timeout=QUERY_TIMEOUT)
        except ExternalToolError:
            return False
        return True

    async def is_initialized(self, cwd: PathLike) -> bool:
        """Whether a trunk has already been configured for this repository."""
        result = await self.runner.run(
            [self.git_binary, "show-ref", "--verify", "--quiet", SPICE_DATA_REF],
            cwd=cwd,
            timeout=QUERY_TIMEOUT,
            check=False,
        )
        return result.ok

    async def repo_init(self, trunk: str, cwd: PathLike) -> None:
        await self._gs(cwd, "repo", "init", "--trunk", trunk)

    async def branch_create(self, name: str, cwd: PathLike, message: str | None = None) -> None:
        """Create a branch on top of the current one, committing staged changes."""
        args = ["branch", "create", name]
        if message:
            args += ["--message", message]
        await self._gs(cwd, *args)

    async def branch_track(self, name: str, base: str, cwd: PathLike) -> None:
        """Start tracking an existing branch with ``base`` as its parent."""
        await self._gs(cwd, "branch", "track", name, "--base", base)

    async def upstack_restack(self, branch: str, cwd: PathLike) -> None:
        """Rebase ``branch`` and everything above it onto their bases."""
        await self._gs(cwd, "upstack", "restack", "--branch", branch, timeout=RESTACK_TIMEOUT)

    async def upstack_submit(self, branch: str, cwd: PathLike, draft: bool = True) -> list[str]:
        """Open or update pull requests for ``branch`` and everything above it.

        Returns:
            Pull request URLs found in the command output.
        """
        args = ["upstack", "submit", "--branch", branch, "--fill"]
        if draft:
            args.append("--draft")
        result = await self._gs(cwd, *args, timeout=SUBMIT_TIMEOUT)
        urls = extract_pr_urls(result.output)
        logger.info("stack submitted: %d pull request(s)", len(urls))
        return urls
