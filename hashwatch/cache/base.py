"""
Client Base Module

Lifecycle shared by every hashwatch client: the data connection, the
optional subscriber connection, flush, expire and the distributed lock.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..config.settings import settings
from ..errors import FeatureDisabledError, transport_errors
from ..network.connection import Connection
from ..network.subscriber import Subscriber
from ..protocol.notifications import Topics

logger = logging.getLogger(__name__)


class Base:
    """
    Connection lifecycle for a single logical owner.

    Usage:
        client = Hash(host='127.0.0.1', port=6379, updates=True)
        await client.connect()
        ...
        await client.disconnect()

    or:
        async with Hash(updates=True) as client:
            ...

    Attributes:
        ttl: Default TTL in milliseconds applied when a write creates a key
        updates: Whether change notifications are enabled
        locks: Whether lock()/unlock() are enabled
        configure: Whether connect() configures keyspace notifications
        connection: The data connection
        topics: Topic naming for this client
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            db: int = None,
            ttl: int = None,
            updates: bool = None,
            locks: bool = None,
            configure: bool = None,
            prefix: str = None,
            factory: Callable = None,
    ):
        host = host if host is not None else settings.HOST
        port = port if port is not None else settings.PORT
        db = db if db is not None else settings.DB

        self.ttl = ttl if ttl is not None else settings.TTL
        self.updates = updates if updates is not None else settings.UPDATES
        self.locks = locks if locks is not None else settings.LOCKS
        self.configure = configure if configure is not None else settings.CONFIGURE
        self.lock_prefix = settings.LOCK_PREFIX

        self.connection = Connection(host, port, db=db, factory=factory)
        self.topics = Topics(prefix if prefix is not None else settings.PREFIX, db)
        self._subscriber: Optional[Subscriber] = None
        if self.updates:
            self._subscriber = Subscriber(
                host, port, db=db, handler=self._on_message, factory=factory
            )

    @property
    def redis(self):
        """The data connection's redis.asyncio client."""
        return self.connection.redis

    async def connect(self) -> None:
        """
        Connect the data connection and, with notifications enabled, the
        subscriber connection.

        Returns only once every step has completed. On failure everything
        opened so far is closed again.

        Raises:
            TransportError: If any connection or the configuration fails
        """
        await self.connection.connect()
        if self._subscriber is None:
            logger.info(f"Connected to {self.connection.host}:{self.connection.port}")
            return

        try:
            await self._initialize_updates()
        except Exception:
            await asyncio.gather(
                self._subscriber.disconnect(),
                self.connection.disconnect(),
                return_exceptions=True,
            )
            raise

        logger.info(
            f"Connected to {self.connection.host}:{self.connection.port} with updates"
        )

    async def _initialize_updates(self) -> None:
        if self.configure:
            with transport_errors():
                await self.redis.config_set("notify-keyspace-events", settings.KEYSPACE_EVENTS)
            logger.debug(f"Configured notify-keyspace-events={settings.KEYSPACE_EVENTS}")
        await self._subscriber.connect()

    async def disconnect(self) -> None:
        """
        Detach all listeners and close both connections.

        Both teardowns are awaited. A failing subscriber teardown is logged
        and ignored; a failing data connection teardown is raised.
        """
        self._detach()

        if self._subscriber is None:
            await self.connection.disconnect()
            return

        primary, secondary = await asyncio.gather(
            self.connection.disconnect(),
            self._subscriber.disconnect(),
            return_exceptions=True,
        )
        if isinstance(secondary, Exception):
            logger.warning(f"Ignoring subscriber teardown error: {secondary}")
        if isinstance(primary, BaseException):
            raise primary
        logger.info(f"Disconnected from {self.connection.host}:{self.connection.port}")

    def _detach(self) -> None:
        """Drop every listener before the connections close."""

    async def _on_message(self, topic: str, payload: str) -> None:
        """Handle one pushed message from the subscriber connection."""

    async def flush(self) -> None:
        """Drop the entire dataset of the selected database."""
        redis = self.redis
        with transport_errors():
            await redis.flushdb()

    async def expire(self, key: str, ttl: int) -> bool:
        """
        Set or overwrite the TTL of a key.

        Args:
            key: The key to expire
            ttl: Time-to-live in milliseconds

        Returns:
            True if the key exists and the TTL was set
        """
        redis = self.redis
        with transport_errors():
            return bool(await redis.pexpire(key, ttl))

    async def lock(self, name: str, ttl: int) -> bool:
        """
        Try to take an exclusive lock.

        Args:
            name: Lock name
            ttl: Milliseconds until the lock expires on its own

        Returns:
            True if acquired, False if another holder has it
        """
        self._require_locks()
        scripts = self.connection.scripts
        with transport_errors():
            acquired = await scripts.acquire(self._lock_token(name), ttl)
        logger.debug(f"Lock {name} {'acquired' if acquired else 'busy'}")
        return acquired

    async def unlock(self, name: str) -> None:
        """Release a lock. No ownership check is made."""
        self._require_locks()
        redis = self.redis
        with transport_errors():
            await redis.delete(self._lock_token(name))

    def _lock_token(self, name: str) -> str:
        return f"{self.lock_prefix}{name}"

    def _require_locks(self) -> None:
        if not self.locks:
            raise FeatureDisabledError("Locking is disabled for this client")

    def _require_updates(self) -> None:
        if self._subscriber is None:
            raise FeatureDisabledError("Updates are disabled for this client")

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
