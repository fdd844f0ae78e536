# Realtime fan-out hub for Collab Marketplace
# In-process publish/subscribe of newly persisted chat rows, keyed by the
# receiving user. One hub lives on app.state for the lifetime of the process.

import asyncio
import itertools
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """A live stream of events addressed to one user.

    Iterate with ``async for event in subscription`` or call ``get()``.
    Iteration ends once the subscription is closed.
    """

    def __init__(self, key: str, user_id: str):
        self.key = key
        self.user_id = user_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: Any):
        if not self._closed:
            self._queue.put_nowait(event)

    def close(self):
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def get(self, timeout: Optional[float] = None) -> Any:
        """Next event, or None once closed. Raises asyncio.TimeoutError on timeout."""
        if timeout is None:
            event = await self._queue.get()
        else:
            event = await asyncio.wait_for(self._queue.get(), timeout)
        if event is _CLOSED:
            return None
        return event

    def pending(self) -> int:
        return self._queue.qsize() - (1 if self._closed else 0)

    def __aiter__(self):
        return self

    async def __anext__(self):
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class RealtimeHub:
    """Pushes every published event to all live subscriptions of the receiving user.

    Events for one user are delivered in publish order. Ordering across
    different users is not guaranteed.
    """

    def __init__(self):
        self._by_user: Dict[str, List[Subscription]] = {}
        self._by_key: Dict[str, Subscription] = {}
        self._counter = itertools.count(1)

    @staticmethod
    def channel_name(user_id: str) -> str:
        return f"chat_{user_id}"

    def subscribe(self, user_id: str) -> Subscription:
        key = f"{self.channel_name(user_id)}#{next(self._counter)}"
        subscription = Subscription(key, user_id)
        self._by_user.setdefault(user_id, []).append(subscription)
        self._by_key[key] = subscription
        logger.debug(f"Subscribed {key}")
        return subscription

    def unsubscribe(self, subscription_or_key) -> bool:
        """Stop pushes to a subscription. Idempotent; returns False if it was already gone."""
        key = getattr(subscription_or_key, "key", subscription_or_key)
        subscription = self._by_key.pop(key, None)
        if subscription is None:
            return False
        subscribers = self._by_user.get(subscription.user_id, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            self._by_user.pop(subscription.user_id, None)
        subscription.close()
        logger.debug(f"Unsubscribed {key}")
        return True

    def unsubscribe_user(self, user_id: str) -> int:
        subscriptions = list(self._by_user.get(user_id, []))
        for subscription in subscriptions:
            self.unsubscribe(subscription)
        return len(subscriptions)

    def publish(self, user_id: str, event: Any) -> int:
        """Push ``event`` to every live subscription of ``user_id``. Returns the fan-out count."""
        subscribers = self._by_user.get(user_id, [])
        for subscription in subscribers:
            subscription.push(event)
        return len(subscribers)

    def subscriber_count(self, user_id: Optional[str] = None) -> int:
        if user_id is None:
            return len(self._by_key)
        return len(self._by_user.get(user_id, []))

    def close(self):
        for key in list(self._by_key):
            self.unsubscribe(key)
