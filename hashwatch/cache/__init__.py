"""Cache clients for hashwatch."""

from .base import Base
from .hash import Client, Hash
from .pair import Pair
from .registry import Subscription, SubscriptionRegistry

__all__ = ["Base", "Client", "Hash", "Pair", "Subscription", "SubscriptionRegistry"]
