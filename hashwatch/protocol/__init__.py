"""Protocol module for hashwatch."""

from .notifications import Disposition, EventType, Notification, Topics
from .scripts import ScriptLibrary

__all__ = [
    "Disposition",
    "EventType",
    "Notification",
    "Topics",
    "ScriptLibrary",
]
