"""Demo entry point — runs the agent against sample traffic with the viewer enabled."""

import argparse
import asyncio
import logging
import os
import random
import signal
import threading

from blackbox_agent import (
    BlackBoxHandler,
    BlackBoxLogger,
    RuntimeCollector,
    install_asyncio_handler,
    install_global_error_handlers,
    load_config,
)
from blackbox_agent.viewer import create_app

SAMPLE_LEVELS = ["DEBUG", "INFO", "INFO", "INFO", "WARN", "ERROR"]
SAMPLE_MESSAGES = [
    "User logged in",
    "Request processed successfully",
    "Database query completed",
    "Cache miss for key",
    "Configuration reloaded",
    "Retrying upstream call with api_key=sk-demo-123",
    "Connection timeout to upstream",
    "Disk usage above threshold",
    "Authentication failed for user",
]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="BlackBox telemetry agent demo")
    parser.add_argument("--config", default=os.environ.get("CONFIG_PATH", "config.yaml"))
    parser.add_argument("--viewer-port", type=int, default=int(os.environ.get("VIEWER_PORT", "5000")))
    parser.add_argument("--no-viewer", action="store_true", default=False)
    parser.add_argument("--logs-per-second", type=int, default=5)
    parser.add_argument("--run-time", type=int, default=30)
    return parser.parse_args(argv)


def start_viewer(agent, port: int) -> threading.Thread:
    app = create_app(agent)
    thread = threading.Thread(
        target=app.run,
        kwargs={"host": "127.0.0.1", "port": port, "use_reloader": False},
        daemon=True,
    )
    thread.start()
    return thread


async def generate_sample_logs(agent, logs_per_second: int, run_time: int, stop: asyncio.Event):
    """Emit random entries at the given rate for *run_time* seconds."""
    for _ in range(run_time):
        if stop.is_set():
            break
        for _ in range(logs_per_second):
            level = random.choice(SAMPLE_LEVELS)
            agent.log(level, random.choice(SAMPLE_MESSAGES), {
                "payload": {"request_id": random.randint(1000, 9999), "token": "demo-token"},
            })
        try:
            await asyncio.wait_for(stop.wait(), timeout=1.0)
        except asyncio.TimeoutError:
            pass


async def main(argv=None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    log = logging.getLogger(__name__)
    args = parse_args(argv)

    agent = BlackBoxLogger()
    agent.init_logger(load_config(args.config))
    uninstall_hooks = install_global_error_handlers(agent)
    install_asyncio_handler(agent)
    logging.getLogger().addHandler(BlackBoxHandler(agent))

    collector = RuntimeCollector(agent)
    collector.start()

    if not args.no_viewer:
        start_viewer(agent, args.viewer_port)
        log.info("Viewer listening on http://127.0.0.1:%d/api/logs", args.viewer_port)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop.set)

    try:
        await generate_sample_logs(agent, args.logs_per_second, args.run_time, stop)
    finally:
        await collector.stop()
        await agent.aclose()
        uninstall_hooks()
        log.info("Agent stats: %s", agent.stats())


if __name__ == "__main__":
    asyncio.run(main())
