"""
Hash Client Module

Per-key hash-map cache with field-granular get/set/drop, atomic counters
and change notifications.

Every successful mutation publishes a diff on the key's diff topic. The
store itself reports deletions, expirations and evictions on the key's
lifecycle topic. Subscribers merge both into one ordered stream of
(error, update, field) deliveries per key.
"""

import asyncio
import logging
from typing import Any, Optional, Sequence, Union

from ..errors import NotificationDecodeError, transport_errors
from ..protocol import codec
from ..protocol.notifications import (
    Notification,
    decode_diff,
    decode_lifecycle,
    encode_deletion,
    encode_removal,
    encode_update,
)
from .base import Base
from .registry import Observer, SubscriptionRegistry

logger = logging.getLogger(__name__)


class Hash(Base):
    """
    Hash-map cache client.

    Usage:
        async with Hash(updates=True, ttl=60000) as client:
            await client.subscribe("user:1", on_change)
            await client.set("user:1", "name", "alice")
            await client.get("user:1", "name")       # 'alice'
            await client.increment("user:1", "visits", max_field="peak")

    Observers are called as observer(error, update, field):
        (None, {...}, None)    fields were written
        (None, None, "field")  a field was removed
        (None, None, None)     the key was deleted, expired or evicted
        (error, None, None)    a malformed diff arrived for the key
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._registry = SubscriptionRegistry()

    async def get(
            self,
            key: str,
            field: Union[str, Sequence[str], None] = None,
    ) -> Any:
        """
        Read a field, several fields or the whole record.

        Args:
            key: The key to read
            field: A field name, a list of field names, or None for all

        Returns:
            - field name: the decoded value, or None if absent
            - list: mapping of each field to its value (None if absent)
            - None: the decoded record, or None if the key is absent

        Raises:
            InvalidRecordError: If a stored value cannot be decoded
        """
        redis = self.redis

        if field is None:
            with transport_errors():
                record = await redis.hgetall(key)
            return codec.decode_mapping(record) if record else None

        if isinstance(field, (list, tuple)):
            if not field:
                return {}
            with transport_errors():
                values = await redis.hmget(key, list(field))
            return {
                name: codec.decode(value) if value is not None else None
                for name, value in zip(field, values)
            }

        with transport_errors():
            value = await redis.hget(key, field)
        return codec.decode(value) if value is not None else None

    async def set(
            self,
            key: str,
            field: Optional[str],
            value: Any,
            ttl: int = None,
    ) -> None:
        """
        Write one field, or every item of a mapping when ``field`` is None.

        The TTL (milliseconds, default from the client) is applied only if
        this write created the key. Writes to an existing key leave its
        expiry alone.

        Raises:
            EncodingError: If a value cannot be serialized or a field name is
                empty; nothing is written
            TransportError: If the write or the diff publish fails
        """
        scripts = self.connection.scripts
        if field is None:
            pairs = codec.encode_mapping(value)
        else:
            pairs = {codec.check_field(field): codec.encode(value)}
        if not pairs:
            return

        ttl = self.ttl if ttl is None else ttl
        with transport_errors():
            created = await scripts.set_fields(key, pairs, ttl)
        logger.debug(f"Set {len(pairs)} field(s) on {key}{' (created)' if created else ''}")

        await self._publish(key, encode_update(pairs))

    async def drop(self, key: str, field: Optional[str] = None) -> None:
        """
        Remove one field, or the whole record when ``field`` is None.

        Removing the last field deletes the record and is published as a
        deletion.

        Raises:
            EncodingError: If ``field`` is an empty name
        """
        if field is None:
            redis = self.redis
            with transport_errors():
                removed = await redis.delete(key)
            if removed:
                await self._publish(key, encode_deletion())
            return

        codec.check_field(field)
        scripts = self.connection.scripts
        with transport_errors():
            removed, exists = await scripts.drop_field(key, field)
        if not removed:
            return
        await self._publish(key, encode_removal(field) if exists else encode_deletion())

    async def increment(
            self,
            key: str,
            field: str,
            amount=1,
            max_field: Optional[str] = None,
    ) -> Any:
        """
        Atomically add ``amount`` to an existing numeric field.

        Args:
            key: The key holding the counter
            field: The counter field; must already exist
            amount: Value to add
            max_field: Field raised to max(old, new) in the same step

        Returns:
            The new value, or None if the key or field does not exist
            (nothing is created)
        """
        codec.check_field(field)
        if max_field is not None:
            codec.check_field(max_field)
        scripts = self.connection.scripts
        with transport_errors():
            result = await scripts.increment(key, field, amount, max_field)
        if result is None:
            return None

        pairs = {field: result[0]}
        if max_field:
            pairs[max_field] = result[1]
        await self._publish(key, encode_update(pairs))
        return codec.decode(result[0])

    async def subscribe(self, key: str, observer: Observer) -> None:
        """
        Watch a key.

        The first observer of a key subscribes its diff and lifecycle
        topics; later observers share them. Every call returns only once
        the topics are live, including calls made while the first
        observer's subscribe is still in flight.

        Raises:
            FeatureDisabledError: If the client was created without updates
            TransportError: If the store-level subscribe fails; the key's
                registrations are rolled back
        """
        self._require_updates()
        first = self._registry.add(key, observer)
        subscription = self._registry.get(key)
        if first:
            subscription.pending = asyncio.ensure_future(
                self._subscriber.subscribe(*self.topics.for_key(key))
            )

        try:
            await asyncio.shield(subscription.pending)
        except Exception:
            if self._registry.get(key) is subscription:
                self._registry.remove(key)
            raise
        if first:
            logger.debug(f"Watching {key}")

    async def unsubscribe(self, key: str, observer: Optional[Observer] = None) -> None:
        """
        Stop delivering a key to one observer, or to all when ``observer``
        is None. The topics are released with the last observer.
        """
        self._require_updates()
        subscription = self._registry.get(key)
        if not self._registry.remove(key, observer):
            return

        # Release only after a subscribe still in flight has reached the store
        if subscription.pending is not None and not subscription.pending.done():
            await asyncio.wait([subscription.pending])
        await self._subscriber.unsubscribe(*self.topics.for_key(key))
        logger.debug(f"Stopped watching {key}")

    async def _publish(self, key: str, payload: str) -> None:
        # The mutation already happened; a failure here is raised, not undone
        await self.connection.publish(self.topics.diff(key), payload)

    def _detach(self) -> None:
        self._registry.clear()

    async def _on_message(self, topic: str, payload: str) -> None:
        parsed = self.topics.parse(topic)
        if parsed is None:
            return

        key, lifecycle = parsed
        subscription = self._registry.get(key)
        if subscription is None:
            logger.debug(f"Ignoring message for unwatched key {key}")
            return

        if lifecycle:
            notification = decode_lifecycle(payload)
            if notification is None:
                return
        else:
            try:
                notification = decode_diff(payload)
            except NotificationDecodeError as exc:
                logger.warning(f"Invalid diff for {key}: {exc}")
                notification = Notification.errored(exc)

        await subscription.apply(notification)


Client = Hash
