"""
hashwatch Configuration Settings

This module contains the configuration defaults for hashwatch clients.
Every client constructor argument falls back to the global ``settings``
instance, which reads its values from the environment.
"""

import os
from dataclasses import dataclass


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


@dataclass
class Settings:
    """Client configuration settings."""

    # Network settings
    HOST: str = os.environ.get("HASHWATCH_HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("HASHWATCH_PORT", "6379"))
    DB: int = int(os.environ.get("HASHWATCH_DB", "0"))

    # TTL settings
    TTL: int = int(os.environ.get("HASHWATCH_TTL", "0"))  # Milliseconds, 0 means no expiration

    # Feature flags
    UPDATES: bool = _flag("HASHWATCH_UPDATES", "false")
    LOCKS: bool = _flag("HASHWATCH_LOCKS", "true")
    CONFIGURE: bool = _flag("HASHWATCH_CONFIGURE", "false")

    # Naming
    PREFIX: str = os.environ.get("HASHWATCH_PREFIX", "hashwatch")
    LOCK_PREFIX: str = os.environ.get("HASHWATCH_LOCK_PREFIX", "hashwatch-lock:")

    # Keyspace channel, generic commands, expired, evicted. No hash events.
    KEYSPACE_EVENTS: str = "Kgxe"

    # Logging settings
    DEBUG: bool = _flag("HASHWATCH_DEBUG", "false")
    LOG_LEVEL: str = os.environ.get("HASHWATCH_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
