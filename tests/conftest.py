# tests/conftest.py
from __future__ import annotations

import pytest

from event_gateway.core.bootstrap import BootstrapState
from event_gateway.core.consumption.registry import EventConsumerRegistry
from event_gateway.core.filter import FilterFactoryRegistry
from event_gateway.core.identity import ContextIdentityProvider
from event_gateway.core.publication.broker_config import PropertiesBrokerConfigResolver
from event_gateway.core.publication.destination import DestinationResolver
from event_gateway.core.publication.factory import (
    MqttSubscriptionPublisherFactory,
    SubscriptionPublisherFactoryRegistry,
)
from event_gateway.core.storage.memory import MemorySubscriptionStorage
from event_gateway.core.subscription.factory import EventSubscriptionFactory
from event_gateway.core.subscription.registry import EventSubscriptionRegistry
from event_gateway.core.subscription.service import EventSubscriptionService
from tests.helpers.fakes import TransportRecorder

NAMESPACE = "event_gateway.publication.broker"


@pytest.fixture
def broker_properties() -> dict[str, str]:
    return {
        f"{NAMESPACE}.main.broker-url": "mqtt://broker.local:1883",
        f"{NAMESPACE}.main.username": "gateway",
        f"{NAMESPACE}.main.password": "secret",
        f"{NAMESPACE}.main.destination-pattern": "{username}-(.+)",
    }


@pytest.fixture
def transports() -> TransportRecorder:
    return TransportRecorder()


@pytest.fixture
def bootstrap() -> BootstrapState:
    return BootstrapState()


@pytest.fixture
def publisher_factory(broker_properties, transports, bootstrap) -> MqttSubscriptionPublisherFactory:
    return MqttSubscriptionPublisherFactory(
        broker_config_resolver=PropertiesBrokerConfigResolver(broker_properties),
        destination_resolver=DestinationResolver(bootstrap),
        transport_factory=transports,
        default_retry_interval_ms=0,
    )


@pytest.fixture
def publisher_factories(publisher_factory) -> SubscriptionPublisherFactoryRegistry:
    registry = SubscriptionPublisherFactoryRegistry()
    registry.register("mqtt", publisher_factory)
    return registry


@pytest.fixture
def identity() -> ContextIdentityProvider:
    return ContextIdentityProvider()


@pytest.fixture
def storage() -> MemorySubscriptionStorage:
    return MemorySubscriptionStorage()


@pytest.fixture
def consumer_registry() -> EventConsumerRegistry:
    return EventConsumerRegistry()


@pytest.fixture
def subscription_registry() -> EventSubscriptionRegistry:
    return EventSubscriptionRegistry()


@pytest.fixture
def service(
    storage,
    publisher_factories,
    subscription_registry,
    consumer_registry,
    identity,
    bootstrap,
) -> EventSubscriptionService:
    return EventSubscriptionService(
        storage=storage,
        factory=EventSubscriptionFactory(
            publisher_factories=publisher_factories,
            filter_factories=FilterFactoryRegistry.with_defaults(),
        ),
        subscription_registry=subscription_registry,
        consumer_registry=consumer_registry,
        identity=identity,
        bootstrap=bootstrap,
    )
