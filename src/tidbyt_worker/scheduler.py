"""Flush deadline scheduling.

Two deadlines compete for the open batch:

- the sliding window, ``last_event_at + batch_window_ms``, which keeps moving
  forward while donations keep arriving;
- the ceiling, ``first_event_at + max_batch_wait_ms``, which bounds how long
  any batch can stay open under continuous activity.

The batch flushes at whichever comes first. Exactly one timer is armed at a
time; re-arming cancels the previous one.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from .config import MIN_BATCH_WINDOW_MS, MIN_MAX_BATCH_WAIT_MS


class WindowScheduler:
    """Owns the single flush timer of a Batcher."""

    def __init__(
        self,
        batch_window_ms: float,
        max_batch_wait_ms: float,
        on_due: Callable[[], None],
    ) -> None:
        self.batch_window_ms = max(MIN_BATCH_WINDOW_MS, batch_window_ms)
        self.max_batch_wait_ms = max(MIN_MAX_BATCH_WAIT_MS, max_batch_wait_ms)
        self._on_due = on_due
        self._timer: Optional[asyncio.TimerHandle] = None
        self.due_at: Optional[float] = None

    def compute_due_at(self, first_event_at: float, last_event_at: float) -> float:
        """Return the flush deadline (ms) for a batch with these timestamps."""
        window_deadline = last_event_at + self.batch_window_ms
        max_deadline = first_event_at + self.max_batch_wait_ms
        return min(window_deadline, max_deadline)

    def arm(self, first_event_at: float, last_event_at: float, now_ms: float) -> float:
        """Cancel any outstanding timer and arm one for the batch's deadline.

        Must be called from within the running event loop. Returns the
        delay in ms.
        """
        self.cancel()
        self.due_at = self.compute_due_at(first_event_at, last_event_at)
        delay_ms = max(0.0, self.due_at - now_ms)
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay_ms / 1000.0, self._fire)
        return delay_ms

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self.due_at = None

    def _fire(self) -> None:
        self._timer = None
        self.due_at = None
        self._on_due()

    @property
    def armed(self) -> bool:
        return self._timer is not None
