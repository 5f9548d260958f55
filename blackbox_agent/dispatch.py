"""Dispatch queue and flush scheduler — ships batches on size or time threshold."""

import asyncio
import collections
import contextvars
import logging
import time
from typing import Optional

from blackbox_agent.errors import DeliveryError
from blackbox_agent.metrics import DispatchMetrics
from blackbox_agent.transport import Transport

logger = logging.getLogger(__name__)

# Set inside a delivery task so log records produced by the transport
# (httpx request lines, for example) can be told apart from host records.
_delivering: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "blackbox_delivering", default=False
)


def in_delivery() -> bool:
    """True while the current task is sending a batch to the collector."""
    return _delivering.get()


class DispatchQueue:
    """Ordered backlog of entries awaiting delivery."""

    def __init__(self):
        self._entries = collections.deque()

    def enqueue(self, entry) -> int:
        """Append an entry and return the new queue length."""
        self._entries.append(entry)
        return len(self._entries)

    def take_batch(self, size: int) -> list:
        """Remove and return up to *size* of the oldest entries."""
        batch = []
        while self._entries and len(batch) < size:
            batch.append(self._entries.popleft())
        return batch

    def snapshot(self) -> list:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class FlushScheduler:
    """Flushes the dispatch queue when either the batch size threshold is
    reached or the flush interval elapses.

    A flush removes the batch from the queue synchronously and hands it
    to a detached task for delivery, so callers never wait on the
    network. Only one delivery is in flight at a time: size and timer
    triggers that fire meanwhile leave entries in the queue, and a
    finished delivery picks up the next full batch. A failed batch is
    dropped rather than re-queued.
    """

    def __init__(
        self,
        queue: DispatchQueue,
        transport: Transport,
        metrics: Optional[DispatchMetrics] = None,
    ):
        self._queue = queue
        self._transport = transport
        self._metrics = metrics or DispatchMetrics()
        self._config = None
        self._timer_task: Optional[asyncio.Task] = None
        self._send_lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, config) -> None:
        """Apply a new config, replacing the flush timer."""
        self._cancel_timer()
        self._config = config
        if not self._ensure_timer() and config.delivery_enabled:
            logger.debug("No running event loop, flush timer deferred")

    def _ensure_timer(self) -> bool:
        """Start the timer on the running loop if it is not running yet."""
        config = self._config
        if config is None or not config.delivery_enabled:
            return False
        if self._timer_task is not None and not self._timer_task.done():
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._timer_task = loop.create_task(self._run_timer(config.flush_interval))
        return True

    def _cancel_timer(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None

    def _lock_for(self, loop: asyncio.AbstractEventLoop) -> asyncio.Lock:
        # asyncio primitives belong to one loop; a logger may outlive it.
        if self._send_lock is None or self._lock_loop is not loop:
            self._send_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._send_lock

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def notify_enqueued(self) -> None:
        """Called after each enqueue; flushes at once on a full batch."""
        self._ensure_timer()
        if self._batch_ready() and not self._tasks:
            self.trigger("size")

    def _batch_ready(self) -> bool:
        config = self._config
        return config is not None and len(self._queue) >= config.batch_size

    def trigger(self, reason: str = "timer") -> Optional[asyncio.Task]:
        """Take one batch off the queue and spawn its delivery.

        Returns the delivery task, or None when there was nothing to do
        (empty queue, no collector configured, or no running loop).
        """
        config = self._config
        if config is None or not config.delivery_enabled or not self._queue:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, %s flush postponed", reason)
            return None

        batch = self._queue.take_batch(config.batch_size)
        body = {
            "projectId": config.project_id,
            "entries": [entry.to_dict() for entry in batch],
        }
        task = loop.create_task(
            self._deliver(self._lock_for(loop), config.collector_url, body, len(batch), reason)
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_delivered)
        return task

    def _on_delivered(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled() or self._tasks:
            return
        if self._batch_ready():
            self.trigger("size")

    async def _run_timer(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            if self._tasks:
                self._metrics.record_skipped_tick()
                logger.debug("Delivery in flight, skipping timer tick")
                continue
            self.trigger("timer")

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def _deliver(
        self, lock: asyncio.Lock, url: str, body: dict, count: int, trigger: str
    ) -> None:
        """Send one batch. Failures are logged and the batch is dropped."""
        async with lock:
            _delivering.set(True)
            start = time.monotonic()
            success = False
            try:
                await self._transport.send(url, body)
                success = True
            except DeliveryError as exc:
                logger.warning("Dropped batch of %d entries: %s", count, exc)
            except Exception:
                logger.exception("Unexpected error delivering batch of %d entries", count)
            finally:
                _delivering.set(False)
            elapsed_ms = (time.monotonic() - start) * 1000

            self._metrics.record_flush(count, success, elapsed_ms, trigger)
            if success:
                logger.debug(
                    "Delivered batch of %d entries in %.1f ms (%s)", count, elapsed_ms, trigger
                )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> int:
        """Number of delivery tasks not yet finished."""
        return len(self._tasks)

    @property
    def timer_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    async def wait_idle(self) -> None:
        """Wait until every spawned delivery, and any follow-up, has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def drain(self) -> None:
        """Flush every queued entry, batch by batch, and wait for delivery."""
        while self.trigger("drain") is not None:
            pass
        await self.wait_idle()

    async def stop(self) -> None:
        """Cancel the timer and let in-flight deliveries complete."""
        task = self._timer_task
        self._cancel_timer()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.wait_idle()
