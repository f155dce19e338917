"""Store connections for hashwatch."""

from .connection import Connection
from .subscriber import Subscriber

__all__ = ["Connection", "Subscriber"]
