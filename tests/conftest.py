"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
The store is simulated in-process with fakeredis; every client created by
a fixture shares one FakeServer, so publishes on the data connection reach
the subscriber connection exactly as they would on a real store.
"""

import asyncio
from typing import AsyncGenerator, List, Optional, Tuple

import fakeredis
import pytest
import pytest_asyncio

from hashwatch.cache.hash import Hash
from hashwatch.cache.pair import Pair


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def fake_server() -> fakeredis.FakeServer:
    """A fresh in-process store."""
    return fakeredis.FakeServer()


@pytest.fixture
def factory(fake_server: fakeredis.FakeServer):
    """
    Client factory bound to the fake store.

    Usage:
        client = Hash(factory=factory)
    """
    def build(**kwargs) -> fakeredis.FakeAsyncRedis:
        return fakeredis.FakeAsyncRedis(server=fake_server, decode_responses=True, **kwargs)
    return build


@pytest.fixture
def offline_server() -> fakeredis.FakeServer:
    """A store that refuses every connection."""
    server = fakeredis.FakeServer()
    server.connected = False
    return server


@pytest.fixture
def offline_factory(offline_server: fakeredis.FakeServer):
    """Client factory whose connections cannot reach the store."""
    def build(**kwargs) -> fakeredis.FakeAsyncRedis:
        return fakeredis.FakeAsyncRedis(server=offline_server, decode_responses=True, **kwargs)
    return build


# ============================================================================
# Client Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def client(factory) -> AsyncGenerator[Hash, None]:
    """A connected Hash client without updates."""
    hash_client = Hash(factory=factory)
    await hash_client.connect()

    yield hash_client

    await hash_client.disconnect()


@pytest_asyncio.fixture
async def watcher(factory) -> AsyncGenerator[Hash, None]:
    """A connected Hash client with updates enabled."""
    hash_client = Hash(factory=factory, updates=True)
    await hash_client.connect()

    yield hash_client

    await hash_client.disconnect()


@pytest_asyncio.fixture
async def pair(factory) -> AsyncGenerator[Pair, None]:
    """A connected Pair client."""
    pair_client = Pair(factory=factory)
    await pair_client.connect()

    yield pair_client

    await pair_client.disconnect()


# ============================================================================
# Observer Helpers
# ============================================================================

Delivery = Tuple[Optional[Exception], Optional[dict], Optional[str]]


class Recorder:
    """
    Observer that records deliveries.

    Usage:
        recorder = Recorder()
        await client.subscribe("key", recorder)
        await client.set("key", "a", 1)
        assert await recorder.next() == (None, {"a": 1}, None)
    """

    def __init__(self):
        self.deliveries: List[Delivery] = []
        self._queue: "asyncio.Queue[Delivery]" = asyncio.Queue()

    def __call__(self, error, update, field) -> None:
        self.deliveries.append((error, update, field))
        self._queue.put_nowait((error, update, field))

    async def next(self, timeout: float = 1.0) -> Delivery:
        """Wait for the next delivery."""
        return await asyncio.wait_for(self._queue.get(), timeout)

    async def nothing(self, timeout: float = 0.1) -> bool:
        """Check that no delivery arrives within ``timeout``."""
        try:
            await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return True
        return False


@pytest.fixture
def recorder_factory():
    """Create observers that record what they are given."""
    return Recorder


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )

