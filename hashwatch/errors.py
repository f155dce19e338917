"""
Exceptions raised by hashwatch clients
"""

from contextlib import contextmanager

from redis.exceptions import RedisError


class HashwatchError(Exception):
    """Base exception for hashwatch"""

    pass


class TransportError(HashwatchError):
    """Raised when a connect, command or publish fails at the store"""

    def __init__(self, message: str = "Redis command failed"):
        self.message = message
        super().__init__(self.message)


class NotConnectedError(HashwatchError):
    """Raised when an operation is attempted without a data connection"""

    def __init__(self, message: str = "Redis client disconnected"):
        self.message = message
        super().__init__(self.message)


class InvalidRecordError(HashwatchError):
    """Raised when a stored value cannot be decoded"""

    def __init__(self, message: str = "Invalid cache record"):
        self.message = message
        super().__init__(self.message)


class EncodingError(HashwatchError):
    """Raised when a value cannot be serialized"""

    def __init__(self, message: str = "Value cannot be serialized"):
        self.message = message
        super().__init__(self.message)


class NotificationDecodeError(HashwatchError):
    """Raised when a diff message cannot be decoded"""

    def __init__(self, message: str = "Invalid notification payload", payload: str = None):
        self.message = message
        self.payload = payload
        super().__init__(self.message)


class FeatureDisabledError(HashwatchError):
    """Raised when a feature is used that the client was configured without"""

    def __init__(self, message: str = "Feature disabled"):
        self.message = message
        super().__init__(self.message)


@contextmanager
def transport_errors():
    """Re-raise store failures as TransportError."""
    try:
        yield
    except RedisError as exc:
        raise TransportError(str(exc) or exc.__class__.__name__) from exc
