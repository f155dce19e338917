"""
hashwatch: Watched Hash Cache

An asyncio client for a Redis-protocol store exposing a per-key hash-map
cache with atomic counters, a short-lived lock and a field-level change
notification stream.
"""

from .cache import Client, Hash, Pair
from .errors import (
    EncodingError,
    FeatureDisabledError,
    HashwatchError,
    InvalidRecordError,
    NotConnectedError,
    NotificationDecodeError,
    TransportError,
)

__version__ = "1.0.0"

__all__ = [
    "Client",
    "Hash",
    "Pair",
    "EncodingError",
    "FeatureDisabledError",
    "HashwatchError",
    "InvalidRecordError",
    "NotConnectedError",
    "NotificationDecodeError",
    "TransportError",
]
