"""
Pair Client Module

Single-value variant: one JSON value per key, with an optional TTL that
is set on every write. Pair clients never publish diffs and cannot be
subscribed to.
"""

from typing import Any

from ..errors import transport_errors
from ..protocol import codec
from .base import Base


class Pair(Base):
    """
    Key -> value cache client.

    Usage:
        async with Pair() as client:
            await client.set("session:1", {"user": 1}, ttl=30000)
            await client.get("session:1")   # {'user': 1}
    """

    def __init__(self, *args, **kwargs):
        kwargs["updates"] = False
        super().__init__(*args, **kwargs)

    async def get(self, key: str) -> Any:
        """
        Read a value.

        Returns:
            The decoded value, or None if the key is absent

        Raises:
            InvalidRecordError: If the stored value cannot be decoded
        """
        redis = self.redis
        with transport_errors():
            value = await redis.get(key)
        return codec.decode(value) if value is not None else None

    async def set(self, key: str, value: Any, ttl: int = None) -> None:
        """
        Write a value, replacing any previous value and expiry.

        Args:
            key: The key to write
            value: Any JSON-serializable value
            ttl: Milliseconds until expiry (default from the client, 0 = none)

        Raises:
            EncodingError: If the value cannot be serialized; nothing is written
        """
        redis = self.redis
        encoded = codec.encode(value)
        ttl = self.ttl if ttl is None else ttl
        with transport_errors():
            if ttl and ttl > 0:
                await redis.psetex(key, ttl, encoded)
            else:
                await redis.set(key, encoded)

    async def drop(self, key: str) -> None:
        redis = self.redis
        with transport_errors():
            await redis.delete(key)
