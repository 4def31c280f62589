"""Public contracts for the event gateway."""
from event_gateway.contracts.consumer import EventConsumer
from event_gateway.contracts.events import EventData, NodeResource, RepoEvent, Resource
from event_gateway.contracts.identity import IdentityProvider
from event_gateway.contracts.publisher import (
    SubscriptionPublisher,
    SubscriptionPublisherFactory,
    Transport,
)
from event_gateway.contracts.storage import SubscriptionStorage
from event_gateway.contracts.subscription import Filter, Subscription, SubscriptionStatus

__all__ = [
    "EventConsumer",
    "EventData", "NodeResource", "RepoEvent", "Resource",
    "IdentityProvider",
    "SubscriptionPublisher", "SubscriptionPublisherFactory", "Transport",
    "SubscriptionStorage",
    "Filter", "Subscription", "SubscriptionStatus",
]
