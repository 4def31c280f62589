# event_gateway/core/subscription/factory.py
from __future__ import annotations

import logging

from event_gateway.contracts.subscription import Subscription
from event_gateway.core.filter import EventFilter, FilterFactoryRegistry
from event_gateway.core.publication.factory import SubscriptionPublisherFactoryRegistry
from event_gateway.core.subscription.event_subscription import EventSubscription
from event_gateway.core.transformation import TransformationChain

logger = logging.getLogger(__name__)


class EventSubscriptionFactory:
    """
    Builds the live :class:`EventSubscription` of a persisted subscription.

    Construction is all-or-nothing: when a filter cannot be built, the
    publisher provisioned for the subscription is released before the error
    propagates.
    """

    def __init__(
        self,
        publisher_factories: SubscriptionPublisherFactoryRegistry,
        filter_factories: FilterFactoryRegistry,
        transformations: TransformationChain | None = None,
    ) -> None:
        self._publisher_factories = publisher_factories
        self._filter_factories = filter_factories
        self._transformations = transformations or TransformationChain()

    async def get_event_subscription(self, subscription: Subscription) -> EventSubscription:
        """
        Raises:
            UnsupportedTypeError: If the subscription or a filter type is unknown.
            SubscriptionConfigurationError: If the configuration is invalid.
        """
        publisher = await self._publisher_factories.get_subscription_publisher(subscription)
        try:
            filters: list[EventFilter] = [
                self._filter_factories.get_filter(f) for f in subscription.filters
            ]
        except Exception:
            await publisher.release()
            raise

        logger.debug(
            "Built event subscription %s with %d filter(s)",
            subscription.id,
            len(filters),
        )
        return EventSubscription(
            subscription_id=subscription.id,
            publisher=publisher,
            filters=filters,
            transformations=self._transformations,
        )
