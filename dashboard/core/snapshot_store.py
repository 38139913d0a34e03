# dashboard/core/snapshot_store.py
"""
Fixed-capacity in-memory history of bot snapshots.

The buffer is a preallocated list addressed through `head`/`count`, so
eviction of the oldest entry is an index move rather than a list shift.
"""
import logging
import threading
from typing import Any, Callable, List, Optional, Tuple

from dashboard.config import settings
from dashboard.core.models import Snapshot, StoreStats, normalize_payload
from dashboard.utils.pagination import page_bounds
from dashboard.utils.time import now_ms, utc_iso

logger = logging.getLogger(__name__)

AppendListener = Callable[[Snapshot], Any]

class SnapshotStore:
    """Ring buffer holding the most recent `capacity` snapshots."""

    def __init__(self, capacity: int = None):
        capacity = settings.BUFFER_CAPACITY if capacity is None else capacity
        if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity <= 0:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")

        self.capacity = capacity
        self._slots: List[Optional[Snapshot]] = [None] * capacity
        self._head = 0
        self._count = 0
        self._last_timestamp = 0
        self._started_ms = now_ms()
        self._lock = threading.Lock()
        self._listeners: List[AppendListener] = []

    def __len__(self) -> int:
        return self._count

    def on_append(self, callback: AppendListener):
        """Register a callback invoked with every newly stored snapshot."""
        self._listeners.append(callback)

    def remove_listener(self, callback: AppendListener):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def append(self, raw: Any) -> None:
        payload = normalize_payload(raw)

        with self._lock:
            # keep timestamps non-decreasing even if the wall clock steps back
            stamp = max(now_ms(), self._last_timestamp)
            self._last_timestamp = stamp
            snapshot = Snapshot(
                timestamp=stamp,
                added_at=utc_iso(stamp),
                payload=payload,
            )

            if self._count < self.capacity:
                self._slots[(self._head + self._count) % self.capacity] = snapshot
                self._count += 1
            else:
                # full: overwrite the oldest slot
                self._slots[self._head] = snapshot
                self._head = (self._head + 1) % self.capacity

        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Append listener %r failed", listener)

    def latest(self) -> Optional[Snapshot]:
        with self._lock:
            if self._count == 0:
                return None
            return self._slots[(self._head + self._count - 1) % self.capacity]

    def _slice(self, start: int, end: int) -> List[Snapshot]:
        # caller holds the lock; bounds already clamped
        return [self._slots[(self._head + i) % self.capacity] for i in range(start, end)]

    def page(self, limit: int, offset: int = 0) -> Tuple[List[Snapshot], int]:
        """Backward-counting page plus the history length it was cut from."""
        with self._lock:
            total = self._count
            start, end = page_bounds(total, max(limit, 0), max(offset, 0))
            return self._slice(start, end), total

    def recent(self, count: int = 100) -> List[Snapshot]:
        """Last `min(count, len)` snapshots, oldest first."""
        count = max(int(count), 0)
        with self._lock:
            count = min(count, self._count)
            return self._slice(self._count - count, self._count)

    def all(self) -> List[Snapshot]:
        with self._lock:
            return self._slice(0, self._count)

    def stats(self) -> StoreStats:
        with self._lock:
            count = self._count
            oldest = self._slots[self._head].timestamp if count else None
            newest = self._slots[(self._head + count - 1) % self.capacity].timestamp if count else None

        return StoreStats(
            count=count,
            capacity=self.capacity,
            utilization=count / self.capacity * 100,
            uptime_ms=now_ms() - self._started_ms,
            oldest_timestamp=oldest,
            newest_timestamp=newest,
        )

    def clear(self):
        """Drop every snapshot. Intended for tests."""
        with self._lock:
            self._slots = [None] * self.capacity
            self._head = 0
            self._count = 0
