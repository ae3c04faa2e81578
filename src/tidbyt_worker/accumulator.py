"""Donation accumulation for the worker.

Accumulates accepted donations into a running count and sum that is
handed to the display sink when the batch flushes.
"""

from dataclasses import dataclass
from typing import Optional

from effekt_common import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DonationEvent:
    """A confirmed donation as received from the front end."""

    donation_id: int
    amount: float
    # Timestamp reported by the sender; informational only, batching uses
    # the worker's own clock.
    timestamp: str = ""


@dataclass(frozen=True)
class BatchSnapshot:
    """Aggregate of one flushed batch."""

    count: int
    sum: float

    def to_dict(self) -> dict:
        return {"count": self.count, "sum": self.sum}


class Accumulator:
    """
    Running aggregate of the open batch.

    Invariant: count == 0 exactly when both event timestamps are None.
    The aggregate is commutative; only last_event_at depends on arrival
    order.
    """

    def __init__(self) -> None:
        self.count = 0
        self.sum = 0.0
        self.first_event_at: Optional[float] = None
        self.last_event_at: Optional[float] = None
        self._total_ingested = 0

    def ingest(self, amount: float, now_ms: float) -> None:
        """Add one validated amount to the open batch."""
        if self.first_event_at is None:
            self.first_event_at = now_ms
        self.last_event_at = now_ms
        self.count += 1
        self.sum += amount
        self._total_ingested += 1
        logger.debug("Accumulated donation", amount=amount, count=self.count, sum=self.sum)

    def reset(self) -> BatchSnapshot:
        """Capture the open batch and start a new, empty one."""
        snapshot = BatchSnapshot(count=self.count, sum=self.sum)
        self.count = 0
        self.sum = 0.0
        self.first_event_at = None
        self.last_event_at = None
        return snapshot

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    @property
    def total_ingested(self) -> int:
        """Total donations accumulated since start."""
        return self._total_ingested
