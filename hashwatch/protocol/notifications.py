"""
Change Notification Protocol

This module defines the messages exchanged on the two per-key topics and
their normalization into a single Notification type.

Topics:
    Diff topic:       <prefix>:<key>            published by the mutation path
    Lifecycle topic:  __keyspace@<db>__:<key>   emitted by the store itself

Diff payloads:
    Update:         field=value&field2=value2   (both sides percent-escaped)
    Field removal:  field                       (percent-escaped, no '=' or '&')
    Deletion:       (empty string)

Field names written by this package are never empty, so a removal payload
is never confused with a deletion. Updates from other writers may still
carry an empty field name.

Lifecycle payloads are keyspace event names. Only del, expired and evicted
mean the key disappeared; every other event name is ignored.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote, unquote

from ..errors import InvalidRecordError, NotificationDecodeError
from . import codec

LIFECYCLE_DELETE_EVENTS = frozenset({"del", "expired", "evicted"})

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class EventType(Enum):
    """Enumeration of normalized notification kinds."""
    UPDATE = auto()
    REMOVE = auto()
    DELETE = auto()
    ERROR = auto()


class Disposition(Enum):
    """Last delivered event kind for a subscription."""
    NONE = auto()
    UPDATED = auto()
    DELETED = auto()
    ERRORED = auto()


@dataclass
class Notification:
    """
    One normalized change event for a key.

    Attributes:
        type: UPDATE, REMOVE, DELETE or ERROR
        update: Decoded changed fields (UPDATE only)
        field: Removed field name (REMOVE only)
        error: Decode failure (ERROR only)
    """
    type: EventType
    update: Optional[Dict[str, Any]] = None
    field: Optional[str] = None
    error: Optional[Exception] = None

    @classmethod
    def updated(cls, update: Dict[str, Any]) -> "Notification":
        return cls(type=EventType.UPDATE, update=update)

    @classmethod
    def removed(cls, field: str) -> "Notification":
        return cls(type=EventType.REMOVE, field=field)

    @classmethod
    def deleted(cls) -> "Notification":
        return cls(type=EventType.DELETE)

    @classmethod
    def errored(cls, error: Exception) -> "Notification":
        return cls(type=EventType.ERROR, error=error)

    @property
    def delivery(self) -> Tuple[Optional[Exception], Optional[Dict[str, Any]], Optional[str]]:
        """The (error, update, field) triple handed to observers."""
        return self.error, self.update, self.field


class Topics:
    """
    Topic naming for one client.

    Both topic names are scoped to the key; the prefixes keep them distinct.
    """

    def __init__(self, prefix: str, db: int = 0):
        self.diff_prefix = f"{prefix}:"
        self.lifecycle_prefix = f"__keyspace@{db}__:"

    def diff(self, key: str) -> str:
        return f"{self.diff_prefix}{key}"

    def lifecycle(self, key: str) -> str:
        return f"{self.lifecycle_prefix}{key}"

    def for_key(self, key: str) -> Tuple[str, str]:
        """Both topics a subscription to ``key`` listens on."""
        return self.diff(key), self.lifecycle(key)

    def parse(self, channel: str) -> Optional[Tuple[str, bool]]:
        """
        Split a channel name into (key, is_lifecycle).

        Returns:
            None for channels that belong to neither topic family
        """
        if channel.startswith(self.lifecycle_prefix):
            return channel[len(self.lifecycle_prefix):], True
        if channel.startswith(self.diff_prefix):
            return channel[len(self.diff_prefix):], False
        return None


def _escape(text: str) -> str:
    return quote(text, safe="")


def _unescape(text: str) -> str:
    if _BAD_ESCAPE.search(text):
        raise ValueError(f"Invalid escape sequence in {text!r}")
    return unquote(text, errors="strict")


def encode_update(pairs: Dict[str, str]) -> str:
    """
    Pack changed fields into one payload.

    Args:
        pairs: Field name -> already encoded value (see codec.encode)
    """
    return "&".join(f"{_escape(field)}={_escape(value)}" for field, value in pairs.items())


def encode_removal(field: str) -> str:
    return _escape(field)


def encode_deletion() -> str:
    return ""


def decode_diff(payload: str) -> Notification:
    """
    Parse a diff payload into a Notification.

    Raises:
        NotificationDecodeError: If the payload is malformed or a value
            is not a valid encoded record
    """
    if payload == "":
        return Notification.deleted()

    try:
        if "=" not in payload:
            if "&" in payload:
                raise ValueError("Field removal carries more than one field")
            return Notification.removed(_unescape(payload))

        update = {}
        for part in payload.split("&"):
            field, sep, value = part.partition("=")
            if not sep:
                raise ValueError(f"Malformed pair {part!r}")
            update[_unescape(field)] = codec.decode(_unescape(value))
    except (ValueError, InvalidRecordError) as exc:
        raise NotificationDecodeError(str(exc), payload=payload) from exc
    return Notification.updated(update)


def decode_lifecycle(event: str) -> Optional[Notification]:
    """Map a keyspace event name to a deletion, or None if it is not one."""
    if event in LIFECYCLE_DELETE_EVENTS:
        return Notification.deleted()
    return None
