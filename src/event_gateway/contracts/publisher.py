# event_gateway/contracts/publisher.py
"""
Publication contracts.

A :class:`SubscriptionPublisher` is one provisioned network egress endpoint
bound to a single destination. A :class:`Transport` is the connection it
sends through.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from event_gateway.contracts.events import RepoEvent
from event_gateway.contracts.subscription import Subscription


@runtime_checkable
class SubscriptionPublisher(Protocol):
    async def publish(self, event: RepoEvent) -> None:
        """Send the event to the bound destination."""
        ...

    async def release(self) -> None:
        """Tear down the connection. Safe to call more than once."""
        ...


@runtime_checkable
class SubscriptionPublisherFactory(Protocol):
    async def get_subscription_publisher(
        self, subscription: Subscription
    ) -> SubscriptionPublisher:
        ...


@runtime_checkable
class Transport(Protocol):
    """Outbound connection to a broker."""

    async def connect(self) -> None:
        ...

    async def send(self, destination: str, payload: bytes, key: str | None) -> None:
        ...

    async def close(self) -> None:
        ...
