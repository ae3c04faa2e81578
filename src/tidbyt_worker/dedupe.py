"""Duplicate suppression for donation ids.

Ids are remembered for a fixed TTL. Expired entries are purged on every
call to ``accept`` rather than by a background task, so memory is bounded
only by the number of distinct ids seen within one TTL window.
"""

from __future__ import annotations


class DedupeFilter:
    """Time-window deduplication keyed by donation id."""

    def __init__(self, ttl_ms: float) -> None:
        self._ttl_ms = ttl_ms
        # id -> expiry (ms)
        self._seen: dict[int, float] = {}
        self._rejected = 0

    def accept(self, event_id: int, now_ms: float) -> bool:
        """Record ``event_id`` and return True unless it is still remembered.

        A rejected id keeps its original expiry.
        """
        self._purge(now_ms)

        if event_id in self._seen:
            self._rejected += 1
            return False

        self._seen[event_id] = now_ms + self._ttl_ms
        return True

    def _purge(self, now_ms: float) -> None:
        expired = [k for k, until in self._seen.items() if until <= now_ms]
        for k in expired:
            del self._seen[k]

    def __len__(self) -> int:
        return len(self._seen)

    @property
    def ttl_ms(self) -> float:
        return self._ttl_ms

    @property
    def stats(self) -> dict[str, int]:
        return {
            "tracked": len(self._seen),
            "duplicates_rejected": self._rejected,
        }
