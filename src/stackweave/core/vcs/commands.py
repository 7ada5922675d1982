"""Async runner for external commands (git, gs, agent CLIs).

Every invocation carries a timeout. Failures surface as
``ExternalToolError`` with the argv, exit code and combined output, and
timeouts as ``CommandTimeoutError``; the process is killed first.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from stackweave.core.errors import CommandTimeoutError, ExternalToolError
from stackweave.core.run_logging import log_complete, log_error, log_start

logger = logging.getLogger(__name__)

# Status queries: rev-parse, cat-file, config, --version, status
QUERY_TIMEOUT = 10.0
# Branch, commit, worktree, fetch
MUTATION_TIMEOUT = 30.0
RESTACK_TIMEOUT = 60.0
SUBMIT_TIMEOUT = 120.0


@dataclass(frozen=True)
class CommandResult:
    """Captured result of a finished command."""

    command: list[str]
    exit_code: int
    stdout: str
    stderr: str
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr


@dataclass
class CommandRunner:
    """Runs argv lists as subprocesses.

    Tracks running processes so ``interrupt()`` can SIGINT them, which is
    how plan-level cancellation reaches a running agent.

    Example:
        >>> runner = CommandRunner()
        >>> result = await runner.run(["git", "rev-parse", "HEAD"], cwd="/repo")
        >>> result.stdout.strip()
        'e83c5163316f89bfbde7d9ab23ca2e25604af290'
    """

    env: Mapping[str, str] | None = None
    _procs: set[asyncio.subprocess.Process] = field(default_factory=set, init=False, repr=False)
    _proc_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def run(
        self,
        args: Sequence[str],
        cwd: str | os.PathLike[str] | None = None,
        timeout: float = MUTATION_TIMEOUT,
        check: bool = True,
        input: str | None = None,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            args: Program and arguments.
            cwd: Working directory.
            timeout: Seconds before the process is killed.
            check: Raise on non-zero exit.
            input: Optional text written to stdin.

        Returns:
            The captured result.

        Raises:
            ExternalToolError: Spawn failure, or non-zero exit with ``check``.
            CommandTimeoutError: The timeout elapsed.
        """
        argv = [str(a) for a in args]
        label = argv[0] if argv else "?"
        start = time.monotonic()
        log_start(logger, label, "command_start", args=" ".join(argv[1:]), cwd=cwd)

        env = None
        if self.env:
            env = os.environ.copy()
            env.update(self.env)

        try:
            async with self._proc_lock:
                proc = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=str(cwd) if cwd is not None else None,
                    env=env,
                )
                self._procs.add(proc)
        except OSError as e:
            log_error(logger, label, "command_spawn_failed", e)
            raise ExternalToolError(
                f"Failed to start {label}: {e}", command=argv, exit_code=None, output=str(e)
            ) from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(input.encode() if input is not None else None),
                timeout=timeout,
            )
        except TimeoutError:
            proc.kill()
            await proc.wait()
            log_error(logger, label, "command_timeout", f"after {timeout}s", args=" ".join(argv[1:]))
            raise CommandTimeoutError(argv, timeout) from None
        finally:
            async with self._proc_lock:
                self._procs.discard(proc)

        duration = time.monotonic() - start
        result = CommandResult(
            command=argv,
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout_bytes.decode("utf-8", errors="replace"),
            stderr=stderr_bytes.decode("utf-8", errors="replace"),
            duration=duration,
        )

        if result.ok:
            log_complete(logger, label, "command_complete", duration, exit_code=0)
        elif check:
            log_error(
                logger,
                label,
                "command_failed",
                result.output.strip() or f"exit {result.exit_code}",
                args=" ".join(argv[1:]),
                exit_code=result.exit_code,
            )
            raise ExternalToolError(
                f"Command failed with exit code {result.exit_code}: {' '.join(argv)}",
                command=argv,
                exit_code=result.exit_code,
                output=result.output,
            )
        return result

    async def interrupt(self) -> None:
        """Send SIGINT to every running process. Best effort."""
        async with self._proc_lock:
            procs = list(self._procs)
        for proc in procs:
            if proc.returncode is None:
                try:
                    proc.send_signal(signal.SIGINT)
                except ProcessLookupError:
                    pass
