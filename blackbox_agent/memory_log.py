"""Memory log — fixed-capacity ring buffer of the most recent entries."""

import collections
import threading

DEFAULT_CAPACITY = 500


class MemoryLog:
    """In-memory log storage backed by a bounded deque.

    The oldest entry is evicted once capacity is exceeded. A lock guards
    the deque so a viewer thread can take snapshots while the event loop
    appends.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._entries = collections.deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._total_count = 0

    def append(self, entry) -> None:
        """Push an entry to the end, evicting from the front when full."""
        with self._lock:
            self._entries.append(entry)
            self._total_count += 1

    def snapshot(self, limit=None) -> list:
        """Return the last *limit* entries (all when None) in insertion order."""
        with self._lock:
            entries = list(self._entries)
        if limit is None:
            return entries
        if limit <= 0:
            return []
        return entries[-limit:]

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    @property
    def total_count(self) -> int:
        """Total number of entries ever appended."""
        return self._total_count

    def __len__(self) -> int:
        return len(self._entries)
