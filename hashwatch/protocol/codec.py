"""
Value Codec Module

Converts field values to and from the strings kept in the store.
Values are JSON documents; numbers encode to their plain decimal form so
the store can increment them in place.
"""

import json
from typing import Any

from ..errors import EncodingError, InvalidRecordError


def encode(value: Any) -> str:
    """
    Serialize a value for storage.

    Raises:
        EncodingError: If the value is cyclic or not JSON-serializable
    """
    try:
        return json.dumps(value, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise EncodingError(str(exc)) from exc


def decode(string: str) -> Any:
    """
    Deserialize a stored value.

    Raises:
        InvalidRecordError: If the string is not a JSON document
    """
    try:
        return json.loads(string)
    except (TypeError, ValueError) as exc:
        raise InvalidRecordError() from exc


def check_field(field: str) -> str:
    """
    Validate a field name before it is written or removed.

    An empty name would make a field removal indistinguishable from a
    deletion on the diff topic.

    Raises:
        EncodingError: If the name is empty
    """
    if field == "":
        raise EncodingError("Field names must not be empty")
    return field


def encode_mapping(mapping: dict) -> dict:
    """Serialize every value of a mapping, failing before anything is sent."""
    if not isinstance(mapping, dict):
        raise EncodingError(f"Expected a mapping, got {type(mapping).__name__}")
    return {check_field(str(field)): encode(value) for field, value in mapping.items()}


def decode_mapping(mapping: dict) -> dict:
    """Deserialize every value of a mapping read back from the store."""
    return {field: decode(value) for field, value in mapping.items()}
