"""Shared test fixtures for worker tests."""

from __future__ import annotations

import asyncio

import pytest

from tidbyt_worker.accumulator import BatchSnapshot, DonationEvent


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingSink:
    """Flush callback that records snapshots and can be made to fail or block."""

    def __init__(self) -> None:
        self.snapshots: list[BatchSnapshot] = []
        self.flushed_at: list[float] = []
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    async def __call__(self, snapshot: BatchSnapshot) -> None:
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        self.flushed_at.append(asyncio.get_running_loop().time())
        self.snapshots.append(snapshot)
        if self.error is not None:
            raise self.error


def make_event(donation_id: int = 1, amount: float = 100.0) -> DonationEvent:
    return DonationEvent(donation_id=donation_id, amount=amount, timestamp="2024-01-01T00:00:00Z")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
