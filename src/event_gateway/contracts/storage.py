# event_gateway/contracts/storage.py
"""
Subscription storage contract.

Implementations own id generation and the created/modified timestamps of
new subscriptions. Every finder returns subscriptions with their filters
loaded.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from event_gateway.contracts.subscription import Subscription, SubscriptionStatus


class SubscriptionStorage(ABC):
    @abstractmethod
    async def save(self, subscription: Subscription) -> Subscription:
        """
        Insert or update a subscription.

        Returns:
            The stored subscription, with ``id`` and dates assigned.
        """

    @abstractmethod
    async def get_by_id(self, subscription_id: str) -> Subscription:
        """
        Raises:
            SubscriptionNotFoundError: If no subscription has this id.
        """

    @abstractmethod
    async def find_by_status(self, status: SubscriptionStatus) -> list[Subscription]:
        ...

    @abstractmethod
    async def find_by_user_and_status(
        self, user: str, status: SubscriptionStatus
    ) -> list[Subscription]:
        ...

    @abstractmethod
    async def find_by_user_and_filter_type(
        self, user: str, filter_type: str
    ) -> list[Subscription]:
        ...

    @abstractmethod
    async def find_owners(self) -> list[str]:
        """Distinct owners of stored subscriptions."""
