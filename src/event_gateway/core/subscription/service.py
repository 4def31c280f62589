# event_gateway/core/subscription/service.py
"""
Subscription lifecycle service.

Keeps subscription storage and the two live registries (event
subscriptions by id, and event consumers) in step. Per id the lifecycle is:

    absent -> persisted ACTIVE + live  (create)
    ACTIVE + live -> INACTIVE           (update with INACTIVE, expiry sweep)
    INACTIVE -> ACTIVE + live           (update with ACTIVE)
    ACTIVE + live -> ACTIVE + rebuilt   (refresh)

Persistence and registration are not transactional. A crash between the
two leaves an active subscription without a live registration until the
next refresh or restart.
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from event_gateway.contracts.identity import IdentityProvider
from event_gateway.contracts.storage import SubscriptionStorage
from event_gateway.contracts.subscription import Subscription, SubscriptionStatus
from event_gateway.core.bootstrap import BootstrapState
from event_gateway.core.consumption.registry import EventConsumerRegistry
from event_gateway.core.exceptions import (
    SubscriptionConfigurationError,
    SubscriptionNotFoundError,
)
from event_gateway.core.subscription.factory import EventSubscriptionFactory
from event_gateway.core.subscription.registry import EventSubscriptionRegistry

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventSubscriptionService:
    def __init__(
        self,
        storage: SubscriptionStorage,
        factory: EventSubscriptionFactory,
        subscription_registry: EventSubscriptionRegistry,
        consumer_registry: EventConsumerRegistry,
        identity: IdentityProvider | None = None,
        bootstrap: BootstrapState | None = None,
    ) -> None:
        self._storage = storage
        self._factory = factory
        self._subscription_registry = subscription_registry
        self._consumer_registry = consumer_registry
        self._identity = identity
        self._bootstrap = bootstrap or BootstrapState()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: Counter[str] = Counter()

    @property
    def storage(self) -> SubscriptionStorage:
        return self._storage

    async def initialize_from_storage(self) -> int:
        """
        Register every persisted ACTIVE subscription.

        Destination patterns are not enforced during this pass. A
        subscription that fails to build is logged and skipped.

        Returns:
            Number of subscriptions registered.
        """
        registered = 0
        with self._bootstrap.bootstrapping():
            for subscription in await self._storage.find_by_status(SubscriptionStatus.ACTIVE):
                try:
                    async with self._locked(subscription.id):
                        if await self._create_and_register(subscription):
                            registered += 1
                except Exception:
                    logger.exception(
                        "Failed to initialize subscription %s from storage",
                        subscription.id,
                    )
        logger.info("Initialized %d subscription(s) from storage", registered)
        return registered

    async def get_subscription(self, subscription_id: str) -> Subscription:
        return await self._storage.get_by_id(subscription_id)

    async def create_subscription(self, subscription: Subscription) -> Subscription:
        """
        Persist a new subscription as ACTIVE, owned by the current caller,
        and register it.
        """
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.created_date = None
        subscription.modified_date = None
        user = self._identity.current_user() if self._identity else None
        if user:
            subscription.user = user

        saved = await self._storage.save(subscription)
        async with self._locked(saved.id):
            await self._create_and_register(saved)
        logger.info("Created subscription %s for user %s", saved.id, saved.user)
        return saved

    async def update_subscription(self, subscription: Subscription) -> Subscription:
        """
        Persist the subscription and apply its status to the live registries.

        Raises:
            ValueError: If subscription is None.
            SubscriptionConfigurationError: If the status is neither ACTIVE
                nor INACTIVE.
        """
        if subscription is None:
            raise ValueError("Cannot update a None subscription")

        subscription.modified_date = utcnow()
        saved = await self._storage.save(subscription)

        async with self._locked(saved.id):
            if saved.status == SubscriptionStatus.ACTIVE:
                await self._create_and_register(saved)
            elif saved.status == SubscriptionStatus.INACTIVE:
                await self._unregister(saved.id)
            else:
                raise SubscriptionConfigurationError(
                    f"Invalid subscription status {saved.status}"
                )
        return saved

    async def refresh_event_subscription(self, subscription_id: str) -> None:
        """
        Rebuild the live registration from the persisted state.

        Raises:
            SubscriptionNotFoundError: If the id is unknown.
        """
        try:
            subscription = await self._storage.get_by_id(subscription_id)
        except SubscriptionNotFoundError:
            logger.warning("Cannot refresh unknown subscription %s", subscription_id)
            raise

        async with self._locked(subscription_id):
            await self._unregister(subscription_id)
            await self._create_and_register(subscription)
        logger.info("Refreshed subscription %s", subscription_id)

    async def unregister_event_subscription(self, subscription_id: str) -> None:
        async with self._locked(subscription_id):
            await self._unregister(subscription_id)

    async def find_subscriptions_by_user_and_status(
        self, user: str, status: SubscriptionStatus
    ) -> list[Subscription]:
        return await self._storage.find_by_user_and_status(user, status)

    async def find_subscriptions_by_user_and_filter_type(
        self, user: str, filter_type: str
    ) -> list[Subscription]:
        return await self._storage.find_by_user_and_filter_type(user, filter_type)

    async def find_subscription_owners(self) -> list[str]:
        return await self._storage.find_owners()

    async def _create_and_register(self, subscription: Subscription) -> bool:
        if self._subscription_registry.get_by_id(subscription.id) is not None:
            logger.debug("Subscription %s already live", subscription.id)
            return False

        event_subscription = await self._factory.get_event_subscription(subscription)
        self._consumer_registry.register(event_subscription)
        self._subscription_registry.register(event_subscription)
        return True

    async def _unregister(self, subscription_id: str) -> None:
        event_subscription = self._subscription_registry.get_by_id(subscription_id)
        if event_subscription is None:
            return

        self._consumer_registry.deregister(event_subscription)
        self._subscription_registry.deregister(subscription_id)
        await event_subscription.release()

    @asynccontextmanager
    async def _locked(self, subscription_id: str) -> AsyncIterator[None]:
        """Serialize lifecycle changes of one id; the lock lives only while in use."""
        lock = self._locks.setdefault(subscription_id, asyncio.Lock())
        self._lock_holders[subscription_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[subscription_id] -= 1
            if self._lock_holders[subscription_id] == 0:
                del self._lock_holders[subscription_id]
                del self._locks[subscription_id]
