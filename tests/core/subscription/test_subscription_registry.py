import pytest

from event_gateway.core.subscription.event_subscription import EventSubscription
from event_gateway.core.subscription.registry import EventSubscriptionRegistry


class NullPublisher:
    async def publish(self, event) -> None:
        pass

    async def release(self) -> None:
        pass


def live(subscription_id: str) -> EventSubscription:
    return EventSubscription(subscription_id, NullPublisher())


def test_register_and_lookup():
    registry = EventSubscriptionRegistry()
    first = live("sub-1")
    registry.register(first)

    assert registry.get_by_id("sub-1") is first
    assert registry.get_by_id("sub-2") is None
    assert "sub-1" in registry
    assert len(registry) == 1


def test_duplicate_id_is_rejected():
    registry = EventSubscriptionRegistry()
    registry.register(live("sub-1"))

    with pytest.raises(ValueError):
        registry.register(live("sub-1"))


def test_deregister_returns_removed_entry():
    registry = EventSubscriptionRegistry()
    first = live("sub-1")
    registry.register(first)

    assert registry.deregister("sub-1") is first
    assert registry.deregister("sub-1") is None
    assert len(registry) == 0


def test_get_all_is_a_snapshot():
    registry = EventSubscriptionRegistry()
    registry.register(live("sub-1"))
    registry.register(live("sub-2"))

    for entry in registry.get_all():
        registry.deregister(entry.id)

    assert len(registry) == 0
