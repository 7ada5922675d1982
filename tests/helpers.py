"""Task builders and in-memory test doubles shared by the test suite."""

from __future__ import annotations

from pathlib import Path

from stackweave.core.errors import ExternalToolError
from stackweave.core.execution.events import ExecutionEvent
from stackweave.core.types import ExecutionTask, Task, Transition
from stackweave.core.vcs.git import GitClient
from stackweave.core.vcs.spice import GitSpiceClient


def make_tasks(*specs: tuple[str, tuple[str, ...]] | str, **sizes: float) -> list[Task]:
    """Build tasks from ids or (id, requires) pairs.

    >>> make_tasks("a", ("b", ("a",)), b=3)
    """
    tasks = []
    for spec in specs:
        task_id, requires = (spec, ()) if isinstance(spec, str) else spec
        tasks.append(Task(id=task_id, requires=requires, estimated_size=sizes.get(task_id, 1.0)))
    return tasks


def exec_tasks(tasks: list[Task], max_retries: int = 2) -> list[ExecutionTask]:
    return [ExecutionTask(task=t, max_retries=max_retries) for t in tasks]


class RecordingObserver:
    """Collects every state change and event it receives."""

    def __init__(self) -> None:
        self.transitions: list[tuple[str, Transition]] = []
        self.events: list[ExecutionEvent] = []

    def on_task_state_change(self, task: ExecutionTask, transition: Transition) -> None:
        self.transitions.append((task.id, transition))

    def on_execution_event(self, event: ExecutionEvent) -> None:
        self.events.append(event)

    def event_types(self) -> list[str]:
        return [e.event_type for e in self.events]

    def events_of(self, event_type: str) -> list[ExecutionEvent]:
        return [e for e in self.events if e.event_type == event_type]


class FakeGit(GitClient):
    """In-memory stand-in for a repository and its worktrees.

    Branches map to commit ids, every worktree shares one object store,
    and ``fail_on`` names operations that should raise.
    """

    def __init__(
        self,
        branches: dict[str, str] | None = None,
        current: str = "main",
        config: dict[str, str] | None = None,
    ) -> None:
        super().__init__()
        self.branches: dict[str, str] = dict(branches or {current: "c0"})
        self.current = current
        self.config: dict[str, str] = dict(config or {})
        self.objects: set[str] = set(self.branches.values())
        self.worktrees: dict[str, str] = {}
        self.heads: dict[str, str] = {}
        self.dirty: dict[str, list[str]] = {}
        self.messages: dict[str, str] = {}
        self.fail_on: set[str] = set()
        self.calls: list[tuple[str, ...]] = []
        self._next_commit = 1

    def _check(self, operation: str, *args: str) -> None:
        self.calls.append((operation, *args))
        if operation in self.fail_on:
            raise ExternalToolError(
                f"git {operation} failed", command=["git", operation, *args], exit_code=128
            )

    async def current_branch(self, cwd):
        return self.current

    async def config_get(self, key, cwd):
        return self.config.get(key)

    async def branch_exists(self, name, cwd):
        return name in self.branches

    async def rev_parse(self, ref, cwd):
        self._check("rev-parse", ref)
        if ref in self.branches:
            return self.branches[ref]
        if ref in self.objects:
            return ref
        raise ExternalToolError(f"unknown revision {ref}", command=["git", "rev-parse", ref], exit_code=128)

    async def head(self, cwd):
        return self.heads[str(cwd)]

    async def object_exists(self, commit, cwd):
        return commit in self.objects

    async def changed_files(self, cwd):
        self._check("status", str(cwd))
        return list(self.dirty.get(str(cwd), []))

    async def create_branch(self, name, start_point, cwd):
        self._check("branch", name, start_point)
        self.branches[name] = start_point

    async def delete_branch(self, name, cwd, force=True):
        self._check("branch-delete", name)
        self.branches.pop(name, None)

    async def add_all(self, cwd):
        self._check("add", str(cwd))

    async def commit(self, message, cwd, allow_empty=False):
        self._check("commit", str(cwd))
        commit = f"c{self._next_commit}"
        self._next_commit += 1
        self.objects.add(commit)
        self.messages[commit] = message
        self.heads[str(cwd)] = commit
        branch = self.worktrees.get(str(cwd))
        if branch is not None:
            self.branches[branch] = commit
        self.dirty.pop(str(cwd), None)
        return commit

    async def fetch(self, source, refspec, cwd):
        self._check("fetch", source, refspec)

    async def worktree_add(self, path, branch, base_ref, cwd):
        self._check("worktree-add", str(path), branch, base_ref)
        Path(path).mkdir(parents=True, exist_ok=True)
        self.worktrees[str(path)] = branch
        self.branches[branch] = base_ref
        self.heads[str(path)] = base_ref

    async def worktree_remove(self, path, cwd, force=True):
        self._check("worktree-remove", str(path))
        self.worktrees.pop(str(path), None)

    async def worktree_prune(self, cwd):
        self._check("worktree-prune")

    async def worktree_list(self, cwd):
        return [str(cwd), *self.worktrees]


class FakeSpice(GitSpiceClient):
    """Records git-spice calls instead of running ``gs``."""

    def __init__(self, initialized: bool = True, urls: list[str] | None = None) -> None:
        super().__init__()
        self.initialized = initialized
        self.urls = list(urls or [])
        self.tracked: dict[str, str] = {}
        self.restacked: list[str] = []
        self.submitted: list[tuple[str, bool]] = []
        self.inits: list[str] = []
        self.fail_track: set[str] = set()
        self.fail_restack: set[str] = set()

    async def is_initialized(self, cwd):
        return self.initialized

    async def repo_init(self, trunk, cwd):
        self.inits.append(trunk)
        self.initialized = True

    async def branch_track(self, name, base, cwd):
        if name in self.fail_track:
            raise ExternalToolError(
                f"gs branch track {name} failed", command=["gs", "branch", "track", name], exit_code=1
            )
        self.tracked[name] = base

    async def upstack_restack(self, branch, cwd):
        if branch in self.fail_restack:
            raise ExternalToolError("rebase conflict", command=["gs", "upstack", "restack"], exit_code=1)
        self.restacked.append(branch)

    async def upstack_submit(self, branch, cwd, draft=True):
        self.submitted.append((branch, draft))
        return list(self.urls)
