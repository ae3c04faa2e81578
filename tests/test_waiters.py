"""Tests for WaiterRegistry and PendingWaiter."""

import asyncio
from unittest.mock import MagicMock

import pytest

from tidbyt_worker.accumulator import BatchSnapshot
from tidbyt_worker.errors import WaiterCancelledError
from tidbyt_worker.waiters import PendingWaiter, WaiterRegistry


def _waiter(hook=None) -> PendingWaiter:
    return PendingWaiter(asyncio.get_running_loop().create_future(), cancel_hook=hook)


class TestWaiterRegistry:

    @pytest.mark.asyncio
    async def test_drain_returns_registered_and_empties(self):
        registry = WaiterRegistry()
        a = registry.register(_waiter())
        b = registry.register(_waiter())

        drained = registry.drain_all()

        assert drained == [a, b]
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_cancel_fails_waiter_with_cancellation(self):
        registry = WaiterRegistry()
        waiter = registry.register(_waiter())

        assert registry.cancel(waiter) is True

        assert waiter not in registry
        with pytest.raises(WaiterCancelledError):
            await waiter.future
        assert registry.total_cancelled == 1

    @pytest.mark.asyncio
    async def test_cancel_after_drain_is_noop(self):
        registry = WaiterRegistry()
        waiter = registry.register(_waiter())
        registry.drain_all()

        assert registry.cancel(waiter) is False
        assert not waiter.future.done()

    @pytest.mark.asyncio
    async def test_register_after_drain_joins_next_batch(self):
        registry = WaiterRegistry()
        registry.register(_waiter())
        registry.drain_all()
        late = registry.register(_waiter())

        assert registry.drain_all() == [late]


class TestPendingWaiter:

    @pytest.mark.asyncio
    async def test_settle_resolves_and_runs_hook_once(self):
        hook = MagicMock()
        waiter = _waiter(hook)
        snapshot = BatchSnapshot(count=1, sum=5.0)

        waiter.settle(snapshot)
        waiter.settle(snapshot)

        assert await waiter.future == snapshot
        hook.assert_called_once()

    @pytest.mark.asyncio
    async def test_fail_after_caller_cancelled_is_ignored(self):
        waiter = _waiter()
        waiter.future.cancel()

        waiter.fail(RuntimeError("boom"))

        assert waiter.future.cancelled()
