# event_gateway/core/subscription/event_subscription.py
from __future__ import annotations

import logging
from typing import Sequence

from event_gateway.contracts.events import RepoEvent
from event_gateway.contracts.publisher import SubscriptionPublisher
from event_gateway.core.filter import AllOf, EventFilter
from event_gateway.core.transformation import TransformationChain

logger = logging.getLogger(__name__)


class EventSubscription:
    """
    Live binding of an active subscription to its publisher.

    As a consumer it publishes every event that passes all of its filters,
    after running the shared transformation chain over it. Rejected events
    are dropped without side effects.
    """

    def __init__(
        self,
        subscription_id: str,
        publisher: SubscriptionPublisher,
        filters: Sequence[EventFilter] = (),
        transformations: TransformationChain | None = None,
    ) -> None:
        self._id = subscription_id
        self._publisher = publisher
        self._filters = tuple(filters)
        self._predicate = AllOf(self._filters)
        self._transformations = transformations or TransformationChain()

    @property
    def id(self) -> str:
        return self._id

    @property
    def publisher(self) -> SubscriptionPublisher:
        return self._publisher

    @property
    def filters(self) -> tuple[EventFilter, ...]:
        return self._filters

    def accepts(self, event: RepoEvent) -> bool:
        return self._predicate.test(event)

    async def consume_event(self, event: RepoEvent) -> None:
        if not self.accepts(event):
            return
        await self._publisher.publish(self._transformations.apply(event))
        logger.debug("Subscription %s published event %s", self._id, event.id)

    async def release(self) -> None:
        await self._publisher.release()

    def __repr__(self) -> str:
        return f"EventSubscription(id={self._id!r})"
