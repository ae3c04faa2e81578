"""Exceptions raised by the worker."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .accumulator import BatchSnapshot


class WorkerError(Exception):
    """Base class for worker errors."""


class WaiterCancelledError(WorkerError):
    """A caller stopped waiting before its batch was flushed."""

    def __init__(self, message: str = "Waiter cancelled before its batch was flushed"):
        super().__init__(message)


class FlushFailedError(WorkerError):
    """The flush callback failed; the batch it carried is gone."""

    def __init__(self, snapshot: BatchSnapshot, message: str = ""):
        self.snapshot = snapshot
        super().__init__(
            message or f"Flush of batch (count={snapshot.count}, sum={snapshot.sum}) failed"
        )


class RenderError(WorkerError):
    """Pixlet could not produce an image."""


class ImageTooLargeError(RenderError):
    """Rendered image exceeds what the push API accepts."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Rendered WebP too large ({size} bytes, limit {limit})")


class PushError(WorkerError):
    """The Tidbyt API rejected a push."""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"Tidbyt push failed ({status}): {body or 'no response body'}")
