"""In-process telemetry agent: memory log, redaction, and batched delivery."""

from blackbox_agent.config import LoggerConfig, load_config
from blackbox_agent.errors import BlackBoxError, DeliveryError
from blackbox_agent.integrations import (
    BlackBoxHandler,
    InstrumentedTransport,
    RuntimeCollector,
    install_asyncio_handler,
    install_global_error_handlers,
    instrumented_client,
)
from blackbox_agent.logger import BlackBoxLogger
from blackbox_agent.models import CallContext, HttpInfo, Level, LogEntry, TraceInfo, create_log_entry
from blackbox_agent.transport import HttpTransport

__all__ = [
    "BlackBoxError",
    "BlackBoxHandler",
    "BlackBoxLogger",
    "CallContext",
    "DeliveryError",
    "HttpInfo",
    "HttpTransport",
    "InstrumentedTransport",
    "Level",
    "LogEntry",
    "LoggerConfig",
    "RuntimeCollector",
    "TraceInfo",
    "create_log_entry",
    "install_asyncio_handler",
    "install_global_error_handlers",
    "instrumented_client",
    "load_config",
]
