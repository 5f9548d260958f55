"""Dispatch metrics — counters and latency summaries for batch delivery."""

import statistics
import threading
import time


class DispatchMetrics:
    """Collects metrics about flush attempts to the collector."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._flushes: int = 0
        self._delivered_batches: int = 0
        self._failed_batches: int = 0
        self._delivered_entries: int = 0
        self._dropped_entries: int = 0
        self._skipped_ticks: int = 0
        self._send_times: list[float] = []
        self._flush_triggers: dict = {"size": 0, "timer": 0, "drain": 0}
        self._start_time = time.monotonic()

    def record_flush(
        self,
        batch_size: int,
        success: bool,
        send_time_ms: float,
        trigger: str = "timer",
    ) -> None:
        """Record the outcome of one delivery attempt.

        Args:
            batch_size: Number of entries in the batch.
            success: Whether the collector accepted the batch.
            send_time_ms: Time taken by the network call, in milliseconds.
            trigger: What caused the flush: "size", "timer" or "drain".
        """
        with self._lock:
            self._flushes += 1
            self._send_times.append(send_time_ms)
            self._flush_triggers[trigger] = self._flush_triggers.get(trigger, 0) + 1
            if success:
                self._delivered_batches += 1
                self._delivered_entries += batch_size
            else:
                self._failed_batches += 1
                self._dropped_entries += batch_size

    def record_skipped_tick(self) -> None:
        """A timer tick found a delivery already in flight."""
        with self._lock:
            self._skipped_ticks += 1

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all collected metrics."""
        with self._lock:
            send_times = list(self._send_times)
            avg_send = sum(send_times) / len(send_times) if send_times else 0.0
            return {
                "flushes": self._flushes,
                "delivered_batches": self._delivered_batches,
                "failed_batches": self._failed_batches,
                "delivered_entries": self._delivered_entries,
                "dropped_entries": self._dropped_entries,
                "skipped_ticks": self._skipped_ticks,
                "avg_send_time_ms": avg_send,
                "p95_send_time_ms": self._p95(send_times),
                "flush_triggers": dict(self._flush_triggers),
                "uptime_seconds": time.monotonic() - self._start_time,
            }

    @staticmethod
    def _p95(send_times: list) -> float:
        """95th percentile send time, interpolated between samples."""
        if len(send_times) < 2:
            return float(send_times[0]) if send_times else 0.0
        return statistics.quantiles(send_times, n=20, method="inclusive")[-1]
