# event_gateway/core/storage/memory.py
from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from uuid import uuid4

from event_gateway.contracts.storage import SubscriptionStorage
from event_gateway.contracts.subscription import Subscription, SubscriptionStatus
from event_gateway.core.exceptions import SubscriptionNotFoundError

logger = logging.getLogger(__name__)


class MemorySubscriptionStorage(SubscriptionStorage):
    """
    In-process subscription storage.

    Subscriptions are copied on the way in and out, so callers never share
    state with the store.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}

    async def save(self, subscription: Subscription) -> Subscription:
        stored = copy.deepcopy(subscription)
        now = datetime.now(timezone.utc)
        if stored.id is None:
            stored.id = str(uuid4())
        if stored.created_date is None:
            stored.created_date = now
        if stored.modified_date is None:
            stored.modified_date = now
        for filter_ in stored.filters:
            if filter_.id is None:
                filter_.id = str(uuid4())

        self._subscriptions[stored.id] = stored
        logger.debug("Saved subscription %s", stored.id)
        return copy.deepcopy(stored)

    async def get_by_id(self, subscription_id: str) -> Subscription:
        stored = self._subscriptions.get(subscription_id)
        if stored is None:
            raise SubscriptionNotFoundError(subscription_id)
        return copy.deepcopy(stored)

    async def find_by_status(self, status: SubscriptionStatus) -> list[Subscription]:
        return [copy.deepcopy(s) for s in self._subscriptions.values() if s.status == status]

    async def find_by_user_and_status(
        self, user: str, status: SubscriptionStatus
    ) -> list[Subscription]:
        return [
            copy.deepcopy(s)
            for s in self._subscriptions.values()
            if s.user == user and s.status == status
        ]

    async def find_by_user_and_filter_type(
        self, user: str, filter_type: str
    ) -> list[Subscription]:
        return [
            copy.deepcopy(s)
            for s in self._subscriptions.values()
            if s.user == user and any(f.type == filter_type for f in s.filters)
        ]

    async def find_owners(self) -> list[str]:
        owners = {s.user for s in self._subscriptions.values() if s.user is not None}
        return sorted(owners)

    def __len__(self) -> int:
        return len(self._subscriptions)
