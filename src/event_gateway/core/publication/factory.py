# event_gateway/core/publication/factory.py
"""
Publisher provisioning.

:class:`SubscriptionPublisherFactoryRegistry` dispatches on
``subscription.type``. The built-in ``mqtt`` factory expects a subscription
config like:

    {"broker-id": "main", "destination": "topic:alice-events"}
"""
from __future__ import annotations

import logging
from typing import Callable, Iterator

from event_gateway.contracts.publisher import (
    SubscriptionPublisher,
    SubscriptionPublisherFactory,
    Transport,
)
from event_gateway.contracts.subscription import Subscription
from event_gateway.core.exceptions import (
    EventPublicationError,
    SubscriptionConfigurationError,
    UnsupportedSubscriptionTypeError,
)
from event_gateway.core.publication.broker_config import (
    BrokerConfig,
    PropertiesBrokerConfigResolver,
)
from event_gateway.core.publication.destination import (
    DestinationContext,
    DestinationResolver,
)
from event_gateway.core.publication.mqtt import (
    MqttConfig,
    MqttSubscriptionPublisher,
    MqttTransport,
)
from event_gateway.core.publication.resilience import CircuitBreaker, RetryPolicy

logger = logging.getLogger(__name__)

MQTT_SUBSCRIPTION_TYPE = "mqtt"
BROKER_ID_KEY = "broker-id"
DESTINATION_KEY = "destination"

TransportFactory = Callable[[BrokerConfig], Transport]


def mqtt_transport_factory(config: BrokerConfig) -> Transport:
    return MqttTransport(
        MqttConfig.from_url(config.url, username=config.username, password=config.password)
    )


class SubscriptionPublisherFactoryRegistry:
    """Routes publisher creation to the factory registered for the subscription type."""

    def __init__(self) -> None:
        self._factories: dict[str, SubscriptionPublisherFactory] = {}

    def register(self, subscription_type: str, factory: SubscriptionPublisherFactory) -> None:
        if subscription_type in self._factories:
            raise ValueError(
                f"Publisher factory '{subscription_type}' already registered"
            )
        self._factories[subscription_type] = factory
        logger.info("Registered publisher factory: %s", subscription_type)

    async def get_subscription_publisher(
        self, subscription: Subscription
    ) -> SubscriptionPublisher:
        """
        Raises:
            UnsupportedSubscriptionTypeError: If no factory handles the type.
        """
        factory = self._factories.get(subscription.type)
        if factory is None:
            raise UnsupportedSubscriptionTypeError(subscription.type)
        return await factory.get_subscription_publisher(subscription)

    def __contains__(self, subscription_type: str) -> bool:
        return subscription_type in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._factories))


class MqttSubscriptionPublisherFactory:
    """
    Builds a resilient MQTT publisher bound to one broker destination.

    Resilience settings the broker leaves unset fall back to the defaults
    passed here.
    """

    def __init__(
        self,
        broker_config_resolver: PropertiesBrokerConfigResolver,
        destination_resolver: DestinationResolver,
        transport_factory: TransportFactory = mqtt_transport_factory,
        default_retry_max_attempts: int = 3,
        default_retry_interval_ms: int = 1000,
        default_circuit_threshold: int = 5,
        default_circuit_half_open_after_ms: int = 1000,
    ) -> None:
        self._broker_config_resolver = broker_config_resolver
        self._destination_resolver = destination_resolver
        self._transport_factory = transport_factory
        self._default_retry_max_attempts = default_retry_max_attempts
        self._default_retry_interval_ms = default_retry_interval_ms
        self._default_circuit_threshold = default_circuit_threshold
        self._default_circuit_half_open_after_ms = default_circuit_half_open_after_ms

    async def get_subscription_publisher(
        self, subscription: Subscription
    ) -> SubscriptionPublisher:
        """
        Raises:
            SubscriptionConfigurationError: On missing subscription config, or
                an invalid broker or destination.
        """
        if subscription.config is None:
            raise SubscriptionConfigurationError("No subscription configuration found")

        broker_config = self._broker_config_resolver.resolve(
            subscription.config.get(BROKER_ID_KEY)
        )
        context = DestinationContext(
            username=subscription.user,
            destination_pattern=broker_config.destination_pattern,
        )
        destination = self._destination_resolver.resolve(
            subscription.config.get(DESTINATION_KEY), context
        )

        transport = self._transport_factory(broker_config)
        try:
            await transport.connect()
        except EventPublicationError as exc:
            logger.warning(
                "Broker for subscription %s unreachable, will retry on publish: %s",
                subscription.id,
                exc,
            )

        return MqttSubscriptionPublisher(
            transport=transport,
            destination=destination,
            retry=self.build_retry_policy(broker_config),
            breaker=self.build_circuit_breaker(
                f"{subscription.id}:{destination.name}", broker_config
            ),
        )

    def build_retry_policy(self, config: BrokerConfig) -> RetryPolicy:
        max_attempts = config.retry_max_attempts or self._default_retry_max_attempts
        if config.backoff_policy_set:
            return RetryPolicy.exponential(
                max_attempts=max_attempts,
                initial_interval=config.retry_initial_interval_ms / 1000,
                multiplier=config.retry_multiplier,
                max_interval=config.retry_max_interval_ms / 1000,
            )
        return RetryPolicy.fixed(max_attempts, self._default_retry_interval_ms / 1000)

    def build_circuit_breaker(self, name: str, config: BrokerConfig) -> CircuitBreaker:
        threshold = config.circuit_breaker_threshold or self._default_circuit_threshold
        half_open_after_ms = config.circuit_breaker_half_open_after_ms
        if half_open_after_ms is None:
            half_open_after_ms = self._default_circuit_half_open_after_ms
        return CircuitBreaker(
            name=name,
            threshold=threshold,
            half_open_after=half_open_after_ms / 1000,
        )
