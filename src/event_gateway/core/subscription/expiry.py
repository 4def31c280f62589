# event_gateway/core/subscription/expiry.py
"""
Scheduled deactivation of stale subscriptions.

An ACTIVE subscription that has not been modified for longer than the limit
is set INACTIVE through the regular update path, which also releases its
publisher. Clients keep a subscription alive by updating it.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable

from event_gateway.contracts.subscription import SubscriptionStatus
from event_gateway.core.subscription.service import EventSubscriptionService, utcnow

logger = logging.getLogger(__name__)


class ScheduledSubscriptionStatusTask:
    def __init__(
        self,
        service: EventSubscriptionService,
        limit: timedelta = timedelta(days=1),
        fixed_delay: timedelta = timedelta(days=1),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._service = service
        self._limit = limit
        self._fixed_delay = fixed_delay
        self._clock = clock
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check_status(self) -> int:
        """
        Deactivate every ACTIVE subscription unmodified for longer than the limit.

        Returns:
            Number of subscriptions deactivated.
        """
        now = self._clock()
        deactivated = 0
        active = await self._service.storage.find_by_status(SubscriptionStatus.ACTIVE)
        for subscription in active:
            try:
                last_modified = subscription.modified_date or subscription.created_date
                if last_modified is None or now - last_modified <= self._limit:
                    continue
                subscription.status = SubscriptionStatus.INACTIVE
                await self._service.update_subscription(subscription)
                deactivated += 1
                logger.info(
                    "Subscription %s expired (last modified %s)",
                    subscription.id,
                    last_modified.isoformat(),
                )
            except Exception:
                logger.exception("Failed to expire subscription %s", subscription.id)
        return deactivated

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="subscription-expiry")
        logger.info(
            "Subscription expiry scheduled every %ss (limit %ss)",
            self._fixed_delay.total_seconds(),
            self._limit.total_seconds(),
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await self.check_status()
            except Exception:
                logger.exception("Subscription expiry sweep failed")
            await asyncio.sleep(self._fixed_delay.total_seconds())
