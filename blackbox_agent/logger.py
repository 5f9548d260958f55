"""Ingestion facade — level-gated logging calls feeding the memory log and dispatch queue."""

import dataclasses
import logging
from typing import Mapping, Optional, Union

from blackbox_agent.config import LoggerConfig
from blackbox_agent.dispatch import DispatchQueue, FlushScheduler
from blackbox_agent.filters import should_log
from blackbox_agent.integrations import collect_runtime_info
from blackbox_agent.memory_log import DEFAULT_CAPACITY, MemoryLog
from blackbox_agent.metrics import DispatchMetrics
from blackbox_agent.models import Level, LogEntry, create_log_entry, utc_timestamp
from blackbox_agent.redaction import Redactor, copy_value
from blackbox_agent.transport import HttpTransport, Transport

logger = logging.getLogger(__name__)


class BlackBoxLogger:
    """High-level logger that wires together the level filter, redactor,
    memory log, and flush scheduler.

    One instance is owned by the host application: create it at startup,
    call ``init_logger`` with a config, and ``aclose`` it at shutdown.
    Until ``init_logger`` is called every logging call is a no-op.
    """

    def __init__(self, transport: Optional[Transport] = None, capacity: int = DEFAULT_CAPACITY):
        self._config: Optional[LoggerConfig] = None
        self._redactor = Redactor()
        self._memory = MemoryLog(capacity)
        self._queue = DispatchQueue()
        self._metrics = DispatchMetrics()
        self._owns_transport = transport is None
        self._transport = transport if transport is not None else HttpTransport()
        self._scheduler = FlushScheduler(self._queue, self._transport, self._metrics)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def init_logger(self, config: Union[LoggerConfig, Mapping]) -> None:
        """Set or replace the configuration and restart the flush timer."""
        if not isinstance(config, LoggerConfig):
            config = LoggerConfig.from_mapping(config)

        self._config = config
        self._redactor = Redactor(config.redact_mode)
        if self._owns_transport:
            self._transport.token = config.collector_token
            self._transport.timeout = config.request_timeout
        self._scheduler.configure(config)

        logger.info(
            "Logger configured: project=%s level=%s delivery=%s batch_size=%d flush_interval=%dms",
            config.project_id,
            config.level.name,
            config.collector_url or "disabled",
            config.batch_size,
            config.flush_interval_ms,
        )

    @property
    def config(self) -> Optional[LoggerConfig]:
        return self._config

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def log(self, level, message: str, details: Optional[Mapping] = None) -> None:
        """Record one entry at *level*. Never raises into the caller."""
        config = self._config
        if not should_log(level, config):
            return

        try:
            entry = create_log_entry(level, message, details)
            entry = self._redactor.apply(entry)
            self._memory.append(entry)
            if config.delivery_enabled:
                self._queue.enqueue(entry)
                self._scheduler.notify_enqueued()
        except Exception:
            logger.exception("Failed to ingest %s entry", level)

    def debug(self, message: str, details: Optional[Mapping] = None) -> None:
        self.log(Level.DEBUG, message, details)

    def info(self, message: str, details: Optional[Mapping] = None) -> None:
        self.log(Level.INFO, message, details)

    def warn(self, message: str, details: Optional[Mapping] = None) -> None:
        self.log(Level.WARN, message, details)

    def error(self, message: str, details: Optional[Mapping] = None) -> None:
        self.log(Level.ERROR, message, details)

    def fatal(self, message: str, details: Optional[Mapping] = None) -> None:
        self.log(Level.FATAL, message, details)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_memory_log(self, limit: Optional[int] = None) -> list[LogEntry]:
        """Snapshot of the most recent entries, oldest first.

        Payloads are copied so callers cannot reach into stored entries.
        """
        return [
            dataclasses.replace(entry, payload=copy_value(entry.payload))
            if entry.payload is not None
            else entry
            for entry in self._memory.snapshot(limit)
        ]

    @property
    def pending_count(self) -> int:
        """Number of entries waiting in the dispatch queue."""
        return len(self._queue)

    @property
    def metrics(self) -> DispatchMetrics:
        return self._metrics

    def stats(self) -> dict:
        return {
            "memory_log_size": len(self._memory),
            "memory_log_capacity": self._memory.capacity,
            "total_logged": self._memory.total_count,
            "pending": len(self._queue),
            "in_flight": self._scheduler.in_flight,
            "dispatch": self._metrics.snapshot(),
        }

    def export_bundle(self, limit: Optional[int] = None) -> dict:
        """Collect recent entries and runtime details for a support bundle."""
        config = self._config
        return {
            "projectId": config.project_id if config else None,
            "generatedAt": utc_timestamp(),
            "logs": [entry.to_dict() for entry in self.get_memory_log(limit)],
            "runtime": collect_runtime_info(),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def flush(self) -> None:
        """Deliver everything currently queued and wait for the results."""
        await self._scheduler.drain()

    async def wait_idle(self) -> None:
        """Wait for in-flight deliveries without triggering new ones."""
        await self._scheduler.wait_idle()

    async def aclose(self, drain: bool = True) -> None:
        """Stop the flush timer, optionally drain the queue, release the transport."""
        if drain:
            await self._scheduler.drain()
        await self._scheduler.stop()
        if self._owns_transport:
            await self._transport.aclose()
        logger.info("Logger closed: %s", self._metrics.snapshot())
