"""Batching of donation confirmations into display updates.

Donations arrive far more often than the display can be refreshed, so they
are accumulated into batches and the sink is called at most once per batch.

Architecture:
- Ingestion: dedupe filter -> amount validation -> accumulator -> re-arm timer
- Timer fires -> flush: snapshot+reset (cancelling the timer), drain waiters,
  await the sink, settle or fail the drained waiters
- One flush at a time; a timer firing during a flush is picked up again
  once the flush finishes
- All in-memory: a batch that fails to flush, or is pending when the
  process dies, is lost
"""

import asyncio
import math
import time
from typing import Awaitable, Callable, Optional

from effekt_common import get_logger

from .accumulator import Accumulator, BatchSnapshot, DonationEvent
from .config import WorkerConfig
from .dedupe import DedupeFilter
from .errors import FlushFailedError, WaiterCancelledError
from .scheduler import WindowScheduler
from .waiters import PendingWaiter, WaiterRegistry

logger = get_logger(__name__)

FlushCallback = Callable[[BatchSnapshot], Awaitable[None]]


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class Batcher:
    """
    Coalesces donation events into batches flushed through ``on_flush``.

    All state is mutated synchronously on the event loop thread; the only
    suspension point is the ``on_flush`` await, which runs with the batch
    already detached from the accumulator.

    Usage:
        batcher = Batcher(
            batch_window_ms=8000,
            max_batch_wait_ms=60000,
            dedupe_ttl_ms=3600000,
            on_flush=sink,
        )
        batcher.submit(event)                        # fire and forget
        snapshot = await batcher.submit_and_await(event)  # wait for the flush
        await batcher.aclose()
    """

    def __init__(
        self,
        *,
        batch_window_ms: float,
        max_batch_wait_ms: float,
        dedupe_ttl_ms: float,
        on_flush: FlushCallback,
        clock: Callable[[], float] = monotonic_ms,
    ):
        """
        Args:
            batch_window_ms: Sliding quiet period (floor 250ms)
            max_batch_wait_ms: Ceiling measured from the batch's first event (floor 1000ms)
            dedupe_ttl_ms: How long a donation id is remembered
            on_flush: Async sink called with each batch snapshot
            clock: Millisecond clock used for deadlines and dedupe expiry
        """
        self._on_flush = on_flush
        self._clock = clock

        self.dedupe = DedupeFilter(dedupe_ttl_ms)
        self.accumulator = Accumulator()
        self.scheduler = WindowScheduler(
            batch_window_ms, max_batch_wait_ms, on_due=self._on_timer
        )
        self.waiters = WaiterRegistry()

        self._flushing = False
        self._closed = False
        self._flush_tasks: set[asyncio.Task] = set()

        # Stats
        self._total_accepted = 0
        self._total_invalid = 0
        self._total_flushes = 0
        self._total_failed = 0

    @classmethod
    def from_config(cls, config: WorkerConfig, on_flush: FlushCallback) -> "Batcher":
        return cls(
            batch_window_ms=config.batch_window_ms,
            max_batch_wait_ms=config.max_batch_wait_ms,
            dedupe_ttl_ms=config.dedupe_ttl_ms,
            on_flush=on_flush,
        )

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def submit(self, event: DonationEvent) -> bool:
        """Add a donation to the open batch.

        Returns False when the donation is a duplicate, has an invalid
        amount, or the batcher is closed. None of these are errors.
        """
        if self._closed:
            logger.warning("Batcher closed, donation dropped", donation_id=event.donation_id)
            return False

        now = self._clock()
        if not self.dedupe.accept(event.donation_id, now):
            logger.info("Duplicate donation ignored", donation_id=event.donation_id)
            return False

        amount = event.amount
        if not math.isfinite(amount) or amount <= 0:
            self._total_invalid += 1
            logger.info("Invalid donation amount ignored", donation_id=event.donation_id, amount=amount)
            return False

        self.accumulator.ingest(amount, now)
        self._total_accepted += 1
        self._schedule(now)
        return True

    async def submit_and_await(
        self,
        event: DonationEvent,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[BatchSnapshot]:
        """Submit a donation and wait for the batch it joined to flush.

        Args:
            event: The donation
            cancel_event: Optional signal; once set, stop waiting (the
                donation itself stays in the batch)

        Returns:
            The flushed batch snapshot, or None if the donation was not accepted.

        Raises:
            FlushFailedError: The batch's flush failed
            WaiterCancelledError: ``cancel_event`` fired before the flush
        """
        if not self.submit(event):
            return None

        loop = asyncio.get_running_loop()
        waiter = self.waiters.register(PendingWaiter(loop.create_future()))

        if cancel_event is not None:
            watcher = asyncio.ensure_future(cancel_event.wait())
            watcher.add_done_callback(
                lambda task: None if task.cancelled() else self.waiters.cancel(waiter)
            )
            waiter.cancel_hook = watcher.cancel

        try:
            return await waiter.future
        except asyncio.CancelledError:
            # Caller went away; its donation stays in the batch
            self.waiters.cancel(waiter)
            raise

    def _schedule(self, now: float) -> None:
        acc = self.accumulator
        delay_ms = self.scheduler.arm(acc.first_event_at, acc.last_event_at, now)
        logger.debug("Flush scheduled", delay_ms=round(delay_ms), count=acc.count)

    # -------------------------------------------------------------------------
    # Flushing
    # -------------------------------------------------------------------------

    def _on_timer(self) -> None:
        task = asyncio.create_task(self.flush(), name="batcher_flush")
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def flush(self) -> Optional[BatchSnapshot]:
        """Flush the open batch now.

        Returns the snapshot if the sink accepted it, None if there was
        nothing to flush, a flush was already in flight, or the sink failed.
        """
        if self._flushing:
            logger.debug("Flush already in flight, deferring")
            return None
        if self.accumulator.is_empty:
            return None

        snapshot = self.accumulator.reset()
        self.scheduler.cancel()
        waiters = self.waiters.drain_all()
        self._flushing = True
        start = time.time()

        logger.info(
            "Flushing batch",
            count=snapshot.count,
            sum=snapshot.sum,
            waiters=len(waiters),
        )

        try:
            await self._on_flush(snapshot)
        except asyncio.CancelledError:
            self._total_failed += 1
            for waiter in waiters:
                waiter.fail(FlushFailedError(snapshot, "Flush cancelled"))
            raise
        except Exception as e:
            self._total_failed += 1
            logger.error(
                "Flush failed",
                count=snapshot.count,
                sum=snapshot.sum,
                error=str(e),
            )
            for waiter in waiters:
                failure = FlushFailedError(snapshot)
                failure.__cause__ = e
                waiter.fail(failure)
            return None
        else:
            self._total_flushes += 1
            logger.info(
                "Flushed batch",
                count=snapshot.count,
                sum=snapshot.sum,
                flush_time_ms=int((time.time() - start) * 1000),
            )
            for waiter in waiters:
                waiter.settle(snapshot)
            return snapshot
        finally:
            self._flushing = False
            self._resume()

    def _resume(self) -> None:
        # A batch that filled up while we were flushing may have had its
        # timer fire (and be ignored) during the flush.
        if self._closed or self.accumulator.is_empty or self.scheduler.armed:
            return
        self._schedule(self._clock())

    async def aclose(self) -> None:
        """Stop scheduling, wait for any in-flight flush, then flush what is left."""
        if self._closed:
            return
        self._closed = True
        self.scheduler.cancel()

        if self._flush_tasks:
            await asyncio.gather(*self._flush_tasks, return_exceptions=True)
        await self.flush()

        for waiter in self.waiters.drain_all():
            waiter.fail(WaiterCancelledError("Batcher closed"))

        logger.info("Batcher closed", **self.stats)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def is_flushing(self) -> bool:
        return self._flushing

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def stats(self) -> dict:
        """Get batcher statistics."""
        return {
            "pending_count": self.accumulator.count,
            "pending_sum": self.accumulator.sum,
            "pending_waiters": len(self.waiters),
            "flushing": self._flushing,
            "total_accepted": self._total_accepted,
            "total_invalid": self._total_invalid,
            "total_flushes": self._total_flushes,
            "total_failed": self._total_failed,
            "total_cancelled_waiters": self.waiters.total_cancelled,
            **self.dedupe.stats,
        }
