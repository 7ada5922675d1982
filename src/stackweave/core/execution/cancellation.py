"""Cooperative cancellation for plan execution.

Strategies check the token at task and layer boundaries; the
orchestrator sets it from ``cancel()``.
"""

from __future__ import annotations

import asyncio

from stackweave.core.errors import CancelledError


class CancellationToken:
    """Token for cooperative cancellation.

    Example:
        >>> token = CancellationToken()
        >>> run = asyncio.create_task(orchestrator.execute(tasks, context))
        >>> token.cancel()
        >>> result = await run
        >>> result.status
        <PlanStatus.CANCELLED: 'cancelled'>
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._event = asyncio.Event()

    def cancel(self, reason: str = "cancelled") -> None:
        """Request cancellation. Safe to call more than once."""
        if not self._cancelled:
            self._reason = reason
        self._cancelled = True
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def check(self) -> None:
        """Raise CancelledError if cancellation was requested.

        Raises:
            CancelledError: If cancel() has been called.
        """
        if self._cancelled:
            raise CancelledError(self._reason or "cancelled")

    async def wait(self) -> None:
        """Block until cancel() is called."""
        await self._event.wait()
