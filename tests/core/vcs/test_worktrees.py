"""Tests for WorktreeManager."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from helpers import exec_tasks, make_tasks

from stackweave.core.errors import ExternalToolError, WorktreeError
from stackweave.core.types import WorktreeContext
from stackweave.core.vcs import GitClient, WorktreeManager


@pytest.fixture
def manager(fake_git):
    return WorktreeManager(git=fake_git)


@pytest.fixture
def task():
    return exec_tasks(make_tasks("task-a"))[0]


class TestCreate:
    """Tests for worktree creation."""

    @pytest.mark.asyncio
    async def test_create_worktree(self, manager, fake_git, task, repo):
        ctx = await manager.create_worktree(task, "main", repo)

        assert ctx.task_id == "task-a"
        assert ctx.worktree_path == str(repo / ".stackweave" / "worktrees" / "task-a")
        assert ctx.branch_name == "tmp-stackweave/task-a"
        assert ctx.base_ref == "main"
        assert ctx.base_commit == "c0"
        assert fake_git.worktrees[ctx.worktree_path] == "tmp-stackweave/task-a"

    @pytest.mark.asyncio
    async def test_stale_branch_replaced(self, manager, fake_git, task, repo):
        fake_git.branches["tmp-stackweave/task-a"] = "stale"
        await manager.create_worktree(task, "main", repo)
        assert ("branch-delete", "tmp-stackweave/task-a") in fake_git.calls
        assert fake_git.branches["tmp-stackweave/task-a"] == "c0"

    @pytest.mark.asyncio
    async def test_stale_directory_removed(self, manager, fake_git, task, repo):
        stale = repo / ".stackweave" / "worktrees" / "task-a"
        stale.mkdir(parents=True)
        fake_git.fail_on.add("worktree-remove")
        await manager.create_worktree(task, "main", repo)
        assert ("worktree-prune",) in fake_git.calls

    @pytest.mark.asyncio
    async def test_git_failure_raises_worktree_error(self, manager, fake_git, task, repo):
        fake_git.fail_on.add("worktree-add")
        with pytest.raises(WorktreeError) as exc_info:
            await manager.create_worktree(task, "main", repo)
        assert exc_info.value.task_id == "task-a"

    @pytest.mark.asyncio
    async def test_unknown_base_raises_worktree_error(self, manager, task, repo):
        with pytest.raises(WorktreeError):
            await manager.create_worktree(task, "no-such-branch", repo)

    @pytest.mark.asyncio
    async def test_create_for_many_tasks(self, manager, repo):
        tasks = exec_tasks(make_tasks("a", "b"))
        contexts = await manager.create_worktrees_for_tasks(tasks, "main", repo)
        assert [c.task_id for c in contexts] == ["a", "b"]
        assert len({c.worktree_path for c in contexts}) == 2


class TestFetch:
    """Tests for making worktree commits reachable."""

    @pytest.mark.asyncio
    async def test_reachable_commit_not_fetched(self, manager, fake_git, task, repo):
        task.commit_hash = "c0"
        assert await manager.fetch_worktree_commits([task], repo) == []
        assert not any(call[0] == "fetch" for call in fake_git.calls)

    @pytest.mark.asyncio
    async def test_task_without_commit_skipped(self, manager, fake_git, task, repo):
        assert await manager.fetch_worktree_commits([task], repo) == []
        assert not any(call[0] == "fetch" for call in fake_git.calls)

    @pytest.mark.asyncio
    async def test_falls_back_to_single_branch(self, task, repo):
        git = AsyncMock(spec=GitClient)
        git.object_exists.return_value = False
        git.fetch.side_effect = [ExternalToolError("refspec rejected"), None]
        manager = WorktreeManager(git=git)
        task.commit_hash = "abc123"

        assert await manager.fetch_worktree_commits([task], repo) == []
        refspec = git.fetch.call_args_list[1].args[1]
        assert refspec == "+tmp-stackweave/task-a:refs/remotes/worktree-task-a/tmp-stackweave/task-a"

    @pytest.mark.asyncio
    async def test_fetch_failure_is_warning(self, task, repo):
        git = AsyncMock(spec=GitClient)
        git.object_exists.return_value = False
        git.fetch.side_effect = ExternalToolError("no such repository")
        manager = WorktreeManager(git=git)
        task.commit_hash = "abc123"

        warnings = await manager.fetch_worktree_commits([task], repo)
        assert len(warnings) == 1
        assert "task-a" in warnings[0]


class TestCleanup:
    """Tests for worktree removal."""

    @pytest.mark.asyncio
    async def test_cleanup_removes_worktree_and_branch(self, manager, fake_git, task, repo):
        ctx = await manager.create_worktree(task, "main", repo)
        assert await manager.cleanup_worktrees([ctx], repo) == []
        assert fake_git.worktrees == {}
        assert "tmp-stackweave/task-a" not in fake_git.branches

    @pytest.mark.asyncio
    async def test_cleanup_failure_collected(self, manager, fake_git, repo):
        fake_git.fail_on.add("worktree-remove")
        contexts = [
            WorktreeContext("a", str(repo / "wt-a"), "tmp-stackweave/a", "main"),
            WorktreeContext("b", str(repo / "wt-b"), "tmp-stackweave/b", "main"),
        ]
        warnings = await manager.cleanup_worktrees(contexts, repo)
        assert len(warnings) == 2
        assert ("worktree-prune",) in fake_git.calls

    def test_paths(self, manager):
        assert manager.worktree_path("x", "/repo") == Path("/repo/.stackweave/worktrees/x")
        assert manager.branch_name("x") == "tmp-stackweave/x"
