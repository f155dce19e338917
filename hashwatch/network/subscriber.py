"""
Subscriber Connection Module

A dedicated connection for receiving pushed topic messages. A connection in
subscribe mode cannot issue ordinary commands, so a client with
notifications enabled owns one of these next to its data connection.

Messages are read by a single background task and handed to the message
handler one at a time, in the order the store delivered them. The handler
is awaited before the next message is read.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..errors import NotConnectedError, TransportError, transport_errors
from .connection import default_factory

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, str], Awaitable[None]]


class Subscriber:
    """
    Exclusively owned pub/sub connection to the store.

    Usage:
        subscriber = Subscriber(host, port, handler=on_message)
        await subscriber.connect()
        await subscriber.subscribe("prefix:key", "__keyspace@0__:key")
        ...
        await subscriber.disconnect()

    Attributes:
        host: Store address
        port: Store port
        db: Logical database number
    """

    def __init__(
            self,
            host: str,
            port: int,
            db: int = 0,
            handler: MessageHandler = None,
            factory: Callable[..., aioredis.Redis] = None,
    ):
        self.host = host
        self.port = port
        self.db = db
        self.handler = handler
        self._factory = factory or default_factory
        self._redis: Optional[aioredis.Redis] = None
        self._pubsub = None
        self._reader: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._redis is not None

    async def connect(self) -> None:
        """
        Open the connection and verify it with PING.

        Raises:
            TransportError: If the store cannot be reached
        """
        if self._redis is not None:
            return

        client = self._factory(host=self.host, port=self.port, db=self.db)
        try:
            await client.ping()
        except RedisError as exc:
            logger.debug(f"Subscriber connection to {self.host}:{self.port} failed: {exc}")
            try:
                await client.aclose()
            except RedisError:
                pass
            raise TransportError(str(exc) or "Connection failed") from exc

        self._redis = client
        self._pubsub = client.pubsub()
        logger.debug(f"Subscriber connected to {self.host}:{self.port}/{self.db}")

    async def subscribe(self, *topics: str) -> None:
        if self._pubsub is None:
            raise NotConnectedError()

        with transport_errors():
            await self._pubsub.subscribe(*topics)
        logger.debug(f"Subscribed to {', '.join(topics)}")

        # The reader exits once nothing is subscribed; restart it on demand
        if self._reader is None or self._reader.done():
            self._reader = asyncio.create_task(self._listen())

    async def unsubscribe(self, *topics: str) -> None:
        if self._pubsub is None:
            raise NotConnectedError()

        with transport_errors():
            await self._pubsub.unsubscribe(*topics)
        logger.debug(f"Unsubscribed from {', '.join(topics)}")

    async def disconnect(self) -> None:
        """Stop the reader and close the connection."""
        if self._redis is None:
            return

        reader, self._reader = self._reader, None
        if reader is not None and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        client, pubsub = self._redis, self._pubsub
        self._redis = None
        self._pubsub = None
        with transport_errors():
            await pubsub.aclose()
            await client.aclose()
        logger.debug(f"Subscriber disconnected from {self.host}:{self.port}")

    async def _listen(self) -> None:
        """Read pushed messages until nothing is subscribed."""
        pubsub = self._pubsub
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                if self.handler is not None:
                    await self.handler(message["channel"], message["data"])
        except RedisError as exc:
            # The connection is presumed usable until a later command fails
            logger.warning(f"Subscriber connection error, delivery stopped: {exc}")
