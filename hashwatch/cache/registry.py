"""
Subscription Registry Module

Tracks the observers of each watched key together with the last delivered
event kind (disposition) for that key. The disposition is what merges the
diff and lifecycle topics into one stream without duplicate deletions:

    UPDATE  always delivered; DELETED -> UPDATED is a recreation
    REMOVE  suppressed once the key is DELETED
    DELETE  suppressed once the key is DELETED
    ERROR   always delivered; does not change how later messages are handled

The disposition is process-local. Two processes watching the same key
each keep their own.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

from ..protocol.notifications import Disposition, EventType, Notification

logger = logging.getLogger(__name__)

Observer = Callable[[Optional[Exception], Optional[Dict[str, Any]], Optional[str]], Any]

_TRANSITIONS = {
    EventType.UPDATE: Disposition.UPDATED,
    EventType.REMOVE: Disposition.UPDATED,
    EventType.DELETE: Disposition.DELETED,
    EventType.ERROR: Disposition.ERRORED,
}


class Subscription:
    """
    Observers of one key.

    Attributes:
        key: The watched key
        observers: Observers in registration order
        disposition: Last delivered event kind
        pending: The store-level subscribe for the key, once started
    """

    def __init__(self, key: str):
        self.key = key
        self.observers: List[Observer] = []
        self.disposition = Disposition.NONE
        self.pending: Optional[asyncio.Future] = None

    def accepts(self, notification: Notification) -> bool:
        """Whether a notification should be delivered given the disposition."""
        if self.disposition is Disposition.DELETED:
            return notification.type in (EventType.UPDATE, EventType.ERROR)
        return True

    async def apply(self, notification: Notification) -> bool:
        """
        Advance the disposition and fan the notification out.

        Every observer is invoked (and awaited, if it returns an awaitable)
        before this returns, so deliveries for one key never interleave.

        Returns:
            True if the notification was delivered, False if suppressed
        """
        if not self.accepts(notification):
            logger.debug(f"Suppressed {notification.type.name} for {self.key}")
            return False

        self.disposition = _TRANSITIONS[notification.type]

        # Observers may unsubscribe while being notified
        for observer in list(self.observers):
            try:
                result = observer(*notification.delivery)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Observer {observer!r} failed for key {self.key}")
        return True


class SubscriptionRegistry:
    """
    Per-key subscriptions for one client.

    The registry only tracks observers; the caller is responsible for the
    store-level topic subscriptions, using the return values of add() and
    remove() to know when the first observer arrives and the last leaves.
    """

    def __init__(self):
        self._subscriptions: Dict[str, Subscription] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)

    def get(self, key: str) -> Optional[Subscription]:
        return self._subscriptions.get(key)

    def keys(self) -> List[str]:
        return list(self._subscriptions)

    def add(self, key: str, observer: Observer) -> bool:
        """
        Register an observer.

        Returns:
            True if this is the first observer for the key
        """
        subscription = self._subscriptions.get(key)
        created = subscription is None
        if created:
            subscription = self._subscriptions[key] = Subscription(key)
        subscription.observers.append(observer)
        return created

    def remove(self, key: str, observer: Optional[Observer] = None) -> bool:
        """
        Remove one observer, or every observer when ``observer`` is None.

        Returns:
            True if the key no longer has any observers and its
            subscription was released
        """
        subscription = self._subscriptions.get(key)
        if subscription is None:
            return False

        if observer is None:
            subscription.observers.clear()
        elif observer in subscription.observers:
            subscription.observers.remove(observer)

        if subscription.observers:
            return False

        del self._subscriptions[key]
        return True

    def clear(self) -> None:
        self._subscriptions.clear()
