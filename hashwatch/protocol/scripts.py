"""
Atomic Script Library

Server-side Lua scripts for every operation that would otherwise need a
client-side check-then-act sequence. Each script runs as one atomic step on
the store, so concurrent writers in other processes are linearized there.
"""

from typing import Dict, List, Optional, Tuple

# Write fields; apply the TTL only when this write created the key.
# KEYS[1] = key, ARGV[1] = ttl ms (0 = none), ARGV[2..] = field, value pairs
SET_FIELDS_SCRIPT: str = """
local created = redis.call('exists', KEYS[1]) == 0
for i = 2, #ARGV, 2 do
    redis.call('hset', KEYS[1], ARGV[i], ARGV[i + 1])
end
local ttl = tonumber(ARGV[1])
if created and ttl > 0 then
    redis.call('pexpire', KEYS[1], ttl)
end
if created then
    return 1
end
return 0
"""

# Remove a field and report whether the record still exists afterwards.
# KEYS[1] = key, ARGV[1] = field
DROP_FIELD_SCRIPT: str = """
local removed = redis.call('hdel', KEYS[1], ARGV[1])
return {removed, redis.call('exists', KEYS[1])}
"""

# Increment an existing numeric field, optionally tracking a running maximum.
# A missing or non-numeric maximum field is overwritten with the new value.
# KEYS[1] = key, ARGV[1] = field, ARGV[2] = amount, ARGV[3] = max field or ''
INCREMENT_SCRIPT: str = """
if redis.call('hexists', KEYS[1], ARGV[1]) == 0 then
    return nil
end
local value = redis.call('hincrbyfloat', KEYS[1], ARGV[1], ARGV[2])
if ARGV[3] == '' then
    return {value}
end
local current = redis.call('hget', KEYS[1], ARGV[3])
local peak = current and tonumber(current)
if not peak or tonumber(value) > peak then
    redis.call('hset', KEYS[1], ARGV[3], value)
    current = value
end
return {value, current}
"""

# Create a lock token only if none is held.
# KEYS[1] = token key, ARGV[1] = ttl ms
LOCK_SCRIPT: str = """
if redis.call('exists', KEYS[1]) == 1 then
    return 0
end
redis.call('set', KEYS[1], '1', 'PX', ARGV[1])
return 1
"""


class ScriptLibrary:
    """
    Scripts registered against one redis.asyncio client.

    Scripts are sent with EVALSHA and loaded on first use, so registering
    them costs no round trip.
    """

    def __init__(self, redis):
        self._set_fields = redis.register_script(SET_FIELDS_SCRIPT)
        self._drop_field = redis.register_script(DROP_FIELD_SCRIPT)
        self._increment = redis.register_script(INCREMENT_SCRIPT)
        self._lock = redis.register_script(LOCK_SCRIPT)

    async def set_fields(self, key: str, pairs: Dict[str, str], ttl: int = 0) -> bool:
        """
        Store encoded field values.

        Returns:
            True if the write created the key
        """
        args: List = [int(ttl or 0)]
        for field, value in pairs.items():
            args.extend((field, value))
        return bool(await self._set_fields(keys=[key], args=args))

    async def drop_field(self, key: str, field: str) -> Tuple[bool, bool]:
        """
        Remove one field.

        Returns:
            (field was removed, key still exists)
        """
        removed, exists = await self._drop_field(keys=[key], args=[field])
        return bool(removed), bool(exists)

    async def increment(
            self,
            key: str,
            field: str,
            amount=1,
            max_field: Optional[str] = None,
    ) -> Optional[List[str]]:
        """
        Add ``amount`` to an existing field.

        Returns:
            None if the key or field is absent, otherwise the stored
            strings [value] or [value, max value]
        """
        return await self._increment(keys=[key], args=[field, amount, max_field or ""])

    async def acquire(self, token: str, ttl: int) -> bool:
        return bool(await self._lock(keys=[token], args=[int(ttl)]))
