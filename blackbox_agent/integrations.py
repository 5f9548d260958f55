"""Instrumentation adapters that feed the logger from outside the core.

- global hooks for uncaught exceptions (main thread, worker threads, asyncio)
- an httpx transport that records every HTTP call
- a stdlib ``logging`` handler bridging existing log calls
- a periodic runtime snapshot
"""

import asyncio
import logging
import os
import platform
import sys
import threading
import time
import traceback
from typing import Callable, Optional

import httpx

from blackbox_agent.dispatch import in_delivery

_PACKAGE = __name__.split(".")[0]

# LogRecord attributes that are not user-supplied ``extra`` fields
_STANDARD_RECORD_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
    "taskName",
}


def _format_exception(exc_type, exc_value, tb) -> str:
    return "".join(traceback.format_exception(exc_type, exc_value, tb))


# ----------------------------------------------------------------------
# Uncaught exceptions
# ----------------------------------------------------------------------


def install_global_error_handlers(agent) -> Callable[[], None]:
    """Log uncaught exceptions from the main thread and worker threads.

    The previously installed hooks still run afterwards. Returns a
    callable that restores them.
    """
    previous_excepthook = sys.excepthook
    previous_threading_hook = threading.excepthook

    def excepthook(exc_type, exc_value, tb):
        if not issubclass(exc_type, KeyboardInterrupt):
            agent.error("Unhandled exception", {
                "stack": _format_exception(exc_type, exc_value, tb),
                "payload": {"type": exc_type.__name__, "message": str(exc_value)},
            })
        previous_excepthook(exc_type, exc_value, tb)

    def threading_hook(args):
        if args.exc_type is not SystemExit:
            agent.error("Unhandled exception in thread", {
                "stack": _format_exception(args.exc_type, args.exc_value, args.exc_traceback),
                "payload": {
                    "type": args.exc_type.__name__,
                    "message": str(args.exc_value),
                    "thread": args.thread.name if args.thread else None,
                },
            })
        previous_threading_hook(args)

    sys.excepthook = excepthook
    threading.excepthook = threading_hook

    def uninstall():
        sys.excepthook = previous_excepthook
        threading.excepthook = previous_threading_hook

    return uninstall


def install_asyncio_handler(agent, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
    """Log exceptions the event loop reports for unawaited tasks and callbacks."""
    loop = loop or asyncio.get_running_loop()
    previous = loop.get_exception_handler()

    def handler(loop, context):
        exc = context.get("exception")
        details = {"payload": {"message": context.get("message")}}
        if exc is not None:
            details["stack"] = _format_exception(type(exc), exc, exc.__traceback__)
            details["payload"]["type"] = type(exc).__name__
            details["payload"]["error"] = str(exc)
        agent.error("Unhandled task exception", details)

        if previous is not None:
            previous(loop, context)
        else:
            loop.default_exception_handler(context)

    loop.set_exception_handler(handler)


# ----------------------------------------------------------------------
# HTTP calls
# ----------------------------------------------------------------------


class InstrumentedTransport(httpx.AsyncBaseTransport):
    """Wraps an httpx transport and logs method, URL, status and latency."""

    def __init__(self, agent, inner: Optional[httpx.AsyncBaseTransport] = None):
        self._agent = agent
        self._inner = inner or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        start = time.monotonic()
        http = {"method": request.method, "url": str(request.url)}
        try:
            response = await self._inner.handle_async_request(request)
        except Exception as exc:
            http["latencyMs"] = round((time.monotonic() - start) * 1000, 1)
            self._agent.error("HTTP error", {"http": http, "payload": {"error": str(exc)}})
            raise

        http["status"] = response.status_code
        http["latencyMs"] = round((time.monotonic() - start) * 1000, 1)
        self._agent.info("HTTP request", {"http": http})
        return response

    async def aclose(self) -> None:
        await self._inner.aclose()


def instrumented_client(agent, transport: Optional[httpx.AsyncBaseTransport] = None, **kwargs) -> httpx.AsyncClient:
    """Build an AsyncClient whose requests are recorded by *agent*."""
    return httpx.AsyncClient(transport=InstrumentedTransport(agent, transport), **kwargs)


# ----------------------------------------------------------------------
# stdlib logging bridge
# ----------------------------------------------------------------------


def _level_for(levelno: int) -> str:
    if levelno >= logging.CRITICAL:
        return "FATAL"
    if levelno >= logging.ERROR:
        return "ERROR"
    if levelno >= logging.WARNING:
        return "WARN"
    if levelno >= logging.INFO:
        return "INFO"
    return "DEBUG"


class BlackBoxHandler(logging.Handler):
    """Forward stdlib log records to the agent.

    Records emitted by the agent's own modules, and any record logged
    while a batch is being sent (httpx request lines, for instance), are
    ignored so delivery never feeds back into the queue.
    """

    def __init__(self, agent, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._agent = agent

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        if record.name == _PACKAGE or record.name.startswith(_PACKAGE + "."):
            return
        if in_delivery():
            return
        try:
            details = {
                "context": {
                    "module": record.name,
                    "file": record.pathname,
                    "function": record.funcName,
                    "line": record.lineno,
                },
            }
            if record.exc_info:
                details["stack"] = _format_exception(*record.exc_info)
            elif record.stack_info:
                details["stack"] = record.stack_info
            extras = self._extract_extras(record)
            if extras:
                details["payload"] = extras
            self._agent.log(_level_for(record.levelno), record.getMessage(), details)
        except Exception:
            self.handleError(record)

    @staticmethod
    def _extract_extras(record: logging.LogRecord) -> dict:
        return {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_")
        }


# ----------------------------------------------------------------------
# Runtime snapshot
# ----------------------------------------------------------------------


def collect_runtime_info() -> dict:
    """Describe the interpreter, platform and process."""
    packages = sorted({
        name.split(".")[0] for name in list(sys.modules) if not name.startswith("_")
    })
    return {
        "python": platform.python_version(),
        "implementation": platform.python_implementation(),
        "platform": platform.platform(),
        "executable": sys.executable,
        "pid": os.getpid(),
        "cwd": os.getcwd(),
        "threads": threading.active_count(),
        "packages": packages,
    }


class RuntimeCollector:
    """Logs a runtime snapshot every *interval* seconds while running."""

    def __init__(self, agent, interval: float = 30.0):
        self._agent = agent
        self._interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                info = collect_runtime_info()
            except Exception as exc:
                self._agent.error("Runtime snapshot failed", {"payload": {"error": str(exc)}})
                continue
            self._agent.info("Runtime snapshot", {"payload": info})

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._agent.info("Runtime snapshot collection stopped")


__all__ = [
    "BlackBoxHandler",
    "InstrumentedTransport",
    "RuntimeCollector",
    "collect_runtime_info",
    "install_asyncio_handler",
    "install_global_error_handlers",
    "instrumented_client",
]
