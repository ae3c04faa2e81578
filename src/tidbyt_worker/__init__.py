"""Tidbyt donation worker.

Coalesces donation confirmations into batches and refreshes a Tidbyt
display at most once per batch.
"""

__version__ = "0.1.0"

from .accumulator import Accumulator, BatchSnapshot, DonationEvent
from .batcher import Batcher
from .config import WorkerConfig
from .dedupe import DedupeFilter
from .errors import (
    FlushFailedError,
    ImageTooLargeError,
    PushError,
    RenderError,
    WaiterCancelledError,
    WorkerError,
)
from .scheduler import WindowScheduler
from .waiters import PendingWaiter, WaiterRegistry

__all__ = [
    "Accumulator",
    "BatchSnapshot",
    "DonationEvent",
    "Batcher",
    "WorkerConfig",
    "DedupeFilter",
    "WindowScheduler",
    "PendingWaiter",
    "WaiterRegistry",
    "WorkerError",
    "WaiterCancelledError",
    "FlushFailedError",
    "RenderError",
    "ImageTooLargeError",
    "PushError",
]
