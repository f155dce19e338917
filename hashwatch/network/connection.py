"""
Data Connection Module

The command channel to the backing store. Every hash, key, scripting and
publish command goes through this connection; pushed topic messages never
do (see subscriber.py).
"""

import logging
from typing import Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..errors import NotConnectedError, TransportError, transport_errors
from ..protocol.scripts import ScriptLibrary

logger = logging.getLogger(__name__)


def default_factory(**kwargs) -> aioredis.Redis:
    """Build a redis.asyncio client that returns str replies."""
    return aioredis.Redis(decode_responses=True, **kwargs)


class Connection:
    """
    Exclusively owned command connection to the store.

    The connection is presumed usable from a successful connect() until a
    later command actually fails; failures are raised to the caller and
    never retried here.

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
            factory: Callable[..., aioredis.Redis] = None,
    ):
        self.host = host
        self.port = port
        self.db = db
        self._factory = factory or default_factory
        self._redis: Optional[aioredis.Redis] = None
        self._scripts: Optional[ScriptLibrary] = None

    @property
    def connected(self) -> bool:
        return self._redis is not None

    @property
    def redis(self) -> aioredis.Redis:
        """
        The live client.

        Raises:
            NotConnectedError: If connect() has not completed
        """
        if self._redis is None:
            raise NotConnectedError()
        return self._redis

    @property
    def scripts(self) -> ScriptLibrary:
        """Atomic scripts bound to the live client."""
        if self._scripts is None:
            raise NotConnectedError()
        return self._scripts

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
            logger.debug(f"Connection to {self.host}:{self.port} failed: {exc}")
            try:
                await client.aclose()
            except RedisError:
                pass
            raise TransportError(str(exc) or "Connection failed") from exc

        self._redis = client
        self._scripts = ScriptLibrary(client)
        logger.debug(f"Connected to {self.host}:{self.port}/{self.db}")

    async def disconnect(self) -> None:
        """Close the connection. Safe to call when not connected."""
        if self._redis is None:
            return

        client = self._redis
        self._redis = None
        self._scripts = None
        with transport_errors():
            await client.aclose()
        logger.debug(f"Disconnected from {self.host}:{self.port}")

    async def publish(self, topic: str, payload: str) -> int:
        """Publish one message; returns the number of receiving connections."""
        redis = self.redis
        with transport_errors():
            return await redis.publish(topic, payload)
