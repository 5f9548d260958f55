"""Shared pytest fixtures for the blackbox-agent test suite."""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio

from blackbox_agent.errors import DeliveryError
from blackbox_agent.logger import BlackBoxLogger


class RecordingTransport:
    """In-memory stand-in for the collector; records every send."""

    def __init__(self, fail: bool = False, error: Exception | None = None):
        self.calls: list[tuple[str, dict]] = []
        self.fail = fail
        self.error = error
        self.closed = False

    async def send(self, url: str, body: dict) -> None:
        self.calls.append((url, body))
        if self.error is not None:
            raise self.error
        if self.fail:
            raise DeliveryError("collector unavailable", status=503)

    async def aclose(self) -> None:
        self.closed = True

    @property
    def bodies(self) -> list[dict]:
        return [body for _, body in self.calls]

    def messages(self, index: int = 0) -> list[str]:
        return [entry["message"] for entry in self.bodies[index]["entries"]]


class GatedTransport(RecordingTransport):
    """Blocks every send until ``gate`` is set; tracks concurrent sends."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.active = 0
        self.max_active = 0

    async def send(self, url: str, body: dict) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self.gate.wait()
            self.calls.append((url, body))
        finally:
            self.active -= 1


@pytest.fixture
def recording_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def failing_transport() -> RecordingTransport:
    return RecordingTransport(fail=True)


@pytest.fixture
def gated_transport() -> GatedTransport:
    return GatedTransport()


@pytest.fixture
def local_agent() -> BlackBoxLogger:
    """An agent in local-only mode (no collector) accepting every level."""
    agent = BlackBoxLogger(transport=RecordingTransport())
    agent.init_logger({"projectId": "test-app", "level": "DEBUG"})
    return agent


def delivery_config(**overrides) -> dict:
    """Config mapping with delivery enabled and a long timer."""
    config = {
        "projectId": "p1",
        "collectorUrl": "http://collector.test/ingest/logs",
        "batchSize": 50,
        "flushIntervalMs": 60_000,
        "level": "DEBUG",
    }
    config.update(overrides)
    return config


@pytest.fixture
def make_config():
    return delivery_config


@pytest.fixture
def transport_factory():
    """Build RecordingTransports with custom failure behaviour."""
    return RecordingTransport


@pytest_asyncio.fixture
async def delivery_agent(recording_transport):
    """An agent delivering to a RecordingTransport; closed after the test."""
    agent = BlackBoxLogger(transport=recording_transport)
    agent.init_logger(delivery_config(batchSize=2))
    yield agent
    await agent.aclose()
