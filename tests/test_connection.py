"""
Tests for the client lifecycle

These tests verify connect() and disconnect():
- Data and subscriber connections are opened and closed together
- A failure in any step closes everything opened so far
- Keyspace notification configuration when requested
- Subscriber teardown errors are ignored on disconnect

Run with: python -m pytest tests/test_connection.py -v
"""

import fakeredis
import pytest
from redis.exceptions import ResponseError

from hashwatch.cache.hash import Hash
from hashwatch.config.settings import settings
from hashwatch.errors import NotConnectedError, TransportError
from hashwatch.network.connection import Connection


class RecordingRedis(fakeredis.FakeAsyncRedis):
    """Fake client that records CONFIG SET calls."""

    config_calls = []

    async def config_set(self, name, value, *args, **kwargs):
        self.config_calls.append((name, value))
        return True


class RefusingRedis(fakeredis.FakeAsyncRedis):
    """Fake client whose CONFIG SET is rejected, as on a managed store."""

    async def config_set(self, name, value, *args, **kwargs):
        raise ResponseError("unknown command 'CONFIG'")


@pytest.fixture
def recording_factory(fake_server):
    RecordingRedis.config_calls = []

    def build(**kwargs):
        return RecordingRedis(server=fake_server, decode_responses=True, **kwargs)
    return build


@pytest.fixture
def refusing_factory(fake_server):
    def build(**kwargs):
        return RefusingRedis(server=fake_server, decode_responses=True, **kwargs)
    return build


@pytest.mark.asyncio
class TestConnection:
    """Test the data connection."""

    async def test_connects(self, factory):
        connection = Connection("127.0.0.1", 6379, factory=factory)
        await connection.connect()

        assert connection.connected
        assert await connection.redis.ping()

        await connection.disconnect()
        assert not connection.connected

    async def test_connect_is_idempotent(self, factory):
        connection = Connection("127.0.0.1", 6379, factory=factory)
        await connection.connect()
        redis = connection.redis

        await connection.connect()
        assert connection.redis is redis

        await connection.disconnect()

    async def test_unreachable_store(self, offline_factory):
        connection = Connection("127.0.0.1", 6379, factory=offline_factory)

        with pytest.raises(TransportError):
            await connection.connect()
        assert not connection.connected

    async def test_not_connected(self):
        connection = Connection("127.0.0.1", 6379)

        with pytest.raises(NotConnectedError):
            connection.redis
        with pytest.raises(NotConnectedError):
            connection.scripts
        with pytest.raises(NotConnectedError):
            await connection.publish("topic", "")

    async def test_disconnect_when_not_connected(self):
        await Connection("127.0.0.1", 6379).disconnect()


@pytest.mark.asyncio
class TestClientLifecycle:
    """Test Base.connect() and Base.disconnect()."""

    async def test_connects_without_updates(self, factory):
        client = Hash(factory=factory)
        await client.connect()

        assert client.connection.connected
        assert client._subscriber is None

        await client.disconnect()
        assert not client.connection.connected

    async def test_connects_both_with_updates(self, factory):
        client = Hash(factory=factory, updates=True)
        await client.connect()

        assert client.connection.connected
        assert client._subscriber.connected

        await client.disconnect()
        assert not client.connection.connected
        assert not client._subscriber.connected

    async def test_unreachable_store(self, offline_factory):
        client = Hash(factory=offline_factory, updates=True)

        with pytest.raises(TransportError):
            await client.connect()
        assert not client.connection.connected
        assert not client._subscriber.connected

    async def test_subscriber_failure_closes_data_connection(self, factory, offline_factory):
        builds = []

        def flaky(**kwargs):
            builds.append(kwargs)
            if len(builds) == 1:
                return factory(**kwargs)
            return offline_factory(**kwargs)

        client = Hash(factory=flaky, updates=True)

        with pytest.raises(TransportError):
            await client.connect()
        assert len(builds) == 2
        assert not client.connection.connected
        assert not client._subscriber.connected

    async def test_configures_keyspace_events(self, recording_factory):
        client = Hash(factory=recording_factory, updates=True, configure=True)
        await client.connect()
        try:
            assert RecordingRedis.config_calls == [
                ("notify-keyspace-events", settings.KEYSPACE_EVENTS)
            ]
        finally:
            await client.disconnect()

    async def test_configuration_skipped_by_default(self, recording_factory):
        client = Hash(factory=recording_factory, updates=True)
        await client.connect()
        await client.disconnect()

        assert RecordingRedis.config_calls == []

    async def test_configuration_failure(self, refusing_factory):
        client = Hash(factory=refusing_factory, updates=True, configure=True)

        with pytest.raises(TransportError):
            await client.connect()
        assert not client.connection.connected
        assert not client._subscriber.connected

    async def test_disconnect_ignores_subscriber_error(self, factory, monkeypatch):
        client = Hash(factory=factory, updates=True)
        await client.connect()

        async def failing():
            raise TransportError("teardown failed")

        monkeypatch.setattr(client._subscriber, "disconnect", failing)

        await client.disconnect()
        assert not client.connection.connected

    async def test_disconnect_detaches_observers(self, factory, recorder_factory):
        client = Hash(factory=factory, updates=True)
        await client.connect()
        await client.subscribe("key", recorder_factory())

        await client.disconnect()
        assert len(client._registry) == 0

    async def test_disconnect_when_never_connected(self, factory):
        await Hash(factory=factory, updates=True).disconnect()

    async def test_context_manager(self, factory):
        async with Hash(factory=factory, updates=True) as client:
            await client.set("key", "a", 1)
            assert await client.get("key", "a") == 1

        assert not client.connection.connected
        assert not client._subscriber.connected

    async def test_defaults_from_settings(self, factory):
        client = Hash(factory=factory)

        assert client.connection.host == settings.HOST
        assert client.connection.port == settings.PORT
        assert client.ttl == settings.TTL
        assert client.updates == settings.UPDATES
        assert client.topics.diff("key") == f"{settings.PREFIX}:key"
