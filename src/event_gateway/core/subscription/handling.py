# event_gateway/core/subscription/handling.py
from __future__ import annotations

import logging

from event_gateway.contracts.subscription import SubscriptionStatus
from event_gateway.core.subscription.service import EventSubscriptionService

logger = logging.getLogger(__name__)


class SubscriptionDisableUserDeletionHandler:
    """Deactivates the active subscriptions of a deleted user."""

    def __init__(self, service: EventSubscriptionService) -> None:
        self._service = service

    async def user_deleted(self, username: str) -> None:
        subscriptions = await self._service.find_subscriptions_by_user_and_status(
            username, SubscriptionStatus.ACTIVE
        )
        for subscription in subscriptions:
            subscription.status = SubscriptionStatus.INACTIVE
            await self._service.update_subscription(subscription)
        logger.info(
            "Disabled %d subscription(s) of deleted user %s",
            len(subscriptions),
            username,
        )
