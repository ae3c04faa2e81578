"""Callers waiting for the batch they contributed to.

A waiter joins whichever batch is open when it registers. The flush that
closes that batch drains the registry and settles every waiter it drained;
waiters registered afterwards belong to the next batch.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional

from .accumulator import BatchSnapshot
from .errors import WaiterCancelledError


@dataclass(eq=False)
class PendingWaiter:
    """One caller's result slot plus an optional hook run when it is released."""

    future: asyncio.Future
    cancel_hook: Optional[Callable[[], None]] = field(default=None)

    def settle(self, snapshot: BatchSnapshot) -> None:
        self._release()
        if not self.future.done():
            self.future.set_result(snapshot)

    def fail(self, error: BaseException) -> None:
        self._release()
        if not self.future.done():
            self.future.set_exception(error)

    def _release(self) -> None:
        hook, self.cancel_hook = self.cancel_hook, None
        if hook is not None:
            hook()


class WaiterRegistry:
    """Waiters of the currently open batch."""

    def __init__(self) -> None:
        self._waiters: dict[PendingWaiter, None] = {}
        self._total_cancelled = 0

    def register(self, waiter: PendingWaiter) -> PendingWaiter:
        self._waiters[waiter] = None
        return waiter

    def cancel(self, waiter: PendingWaiter) -> bool:
        """Remove ``waiter`` and fail it with a cancellation error.

        Returns False if a flush already drained it; in that case the flush
        owns its outcome and nothing changes.
        """
        if waiter not in self._waiters:
            return False
        del self._waiters[waiter]
        self._total_cancelled += 1
        waiter.fail(WaiterCancelledError())
        return True

    def drain_all(self) -> list[PendingWaiter]:
        drained = list(self._waiters)
        self._waiters.clear()
        return drained

    def __len__(self) -> int:
        return len(self._waiters)

    def __contains__(self, waiter: PendingWaiter) -> bool:
        return waiter in self._waiters

    @property
    def total_cancelled(self) -> int:
        return self._total_cancelled
