# event_gateway/core/subscription/registry.py
"""
Registry of live event subscriptions, keyed by subscription id.

The registry is the in-memory counterpart of subscription storage: an id is
present here only while its subscription is active and its publisher is
provisioned.
"""
from __future__ import annotations

import logging
import threading
from typing import Iterator

from event_gateway.core.subscription.event_subscription import EventSubscription

logger = logging.getLogger(__name__)


class EventSubscriptionRegistry:
    def __init__(self) -> None:
        self._subscriptions: dict[str, EventSubscription] = {}
        self._lock = threading.RLock()

    def register(self, event_subscription: EventSubscription) -> None:
        """
        Raises:
            ValueError: If a live subscription with the same id exists.
        """
        with self._lock:
            if event_subscription.id in self._subscriptions:
                raise ValueError(
                    f"Event subscription '{event_subscription.id}' already registered"
                )
            self._subscriptions[event_subscription.id] = event_subscription
        logger.info("Registered event subscription '%s'", event_subscription.id)

    def deregister(self, subscription_id: str) -> EventSubscription | None:
        """Remove and return the live subscription, or None if there is none."""
        with self._lock:
            removed = self._subscriptions.pop(subscription_id, None)
        if removed is not None:
            logger.info("Deregistered event subscription '%s'", subscription_id)
        return removed

    def get_by_id(self, subscription_id: str) -> EventSubscription | None:
        with self._lock:
            return self._subscriptions.get(subscription_id)

    def get_all(self) -> list[EventSubscription]:
        with self._lock:
            return list(self._subscriptions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def __contains__(self, subscription_id: str) -> bool:
        with self._lock:
            return subscription_id in self._subscriptions

    def __iter__(self) -> Iterator[EventSubscription]:
        return iter(self.get_all())
