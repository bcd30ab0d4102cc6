"""Bounded retries and single-flight coordination for token renewal."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a call may be retried after an expired-token signal."""

    max_attempts: int = 1

    def allows(self, attempt: int) -> bool:
        return attempt < self.max_attempts


NO_RETRY = RetryPolicy(max_attempts=0)


class SingleFlight(Generic[T]):
    """A guarded slot that is either idle or holds one in-progress operation.

    The slot belongs to a single event loop.  :meth:`join_or_become_leader` is
    the only way to fill it: the first caller installs its operation as a task
    before yielding to the loop, and every caller that arrives while the task
    is running awaits that same task.  The task is shielded, so a cancelled
    caller never cancels the operation for the others.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task[T] | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None

    async def wait(self) -> None:
        """Wait for a pending operation to settle.

        A failure of the pending operation is re-raised, so callers queued
        behind it see the same error instead of starting another attempt.
        """
        task = self._task
        if task is None:
            return
        await asyncio.shield(task)

    async def join_or_become_leader(self, operation: Callable[[], Awaitable[T]]) -> T:
        task = self._task
        if task is None:
            task = asyncio.ensure_future(self._run(operation))
            self._task = task
            task.add_done_callback(_retrieve_exception)
        return await asyncio.shield(task)

    async def _run(self, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await operation()
        finally:
            if self._task is asyncio.current_task():
                self._task = None


def _retrieve_exception(task: asyncio.Task) -> None:
    # Keeps asyncio from reporting a failure nobody awaited when every
    # waiter was cancelled.
    if not task.cancelled():
        task.exception()
