"""Tests for the Accumulator."""

import itertools

import pytest

from tidbyt_worker.accumulator import Accumulator, BatchSnapshot


class TestAccumulator:
    """Test cases for Accumulator."""

    def test_starts_empty(self):
        acc = Accumulator()

        assert acc.is_empty
        assert acc.first_event_at is None
        assert acc.last_event_at is None

    def test_ingest_updates_aggregate_and_timestamps(self):
        acc = Accumulator()

        acc.ingest(100.0, now_ms=10)
        acc.ingest(50.0, now_ms=30)

        assert acc.count == 2
        assert acc.sum == 150.0
        assert acc.first_event_at == 10
        assert acc.last_event_at == 30

    def test_reset_returns_snapshot_and_clears(self):
        acc = Accumulator()
        acc.ingest(100.0, now_ms=0)
        acc.ingest(25.5, now_ms=5)

        snapshot = acc.reset()

        assert snapshot == BatchSnapshot(count=2, sum=125.5)
        assert acc.is_empty
        assert acc.sum == 0
        assert acc.first_event_at is None
        assert acc.last_event_at is None

    def test_reset_empty_returns_zero_snapshot(self):
        acc = Accumulator()
        assert acc.reset() == BatchSnapshot(count=0, sum=0.0)

    def test_total_survives_reset(self):
        acc = Accumulator()
        acc.ingest(1.0, now_ms=0)
        acc.ingest(2.0, now_ms=0)
        acc.reset()
        acc.ingest(3.0, now_ms=0)

        assert acc.total_ingested == 3
        assert acc.count == 1

    def test_aggregate_is_order_independent(self):
        amounts = [100.0, 50.0, 25.0, 12.5]
        results = set()
        for order in itertools.permutations(amounts):
            acc = Accumulator()
            for t, amount in enumerate(order):
                acc.ingest(amount, now_ms=t)
            results.add(acc.reset())

        assert results == {BatchSnapshot(count=4, sum=187.5)}

    def test_snapshot_is_immutable(self):
        snapshot = BatchSnapshot(count=1, sum=1.0)
        with pytest.raises(AttributeError):
            snapshot.count = 2  # type: ignore[misc]
