# event_gateway/core/publication/broker_config.py
"""
Broker configuration resolution.

Brokers are addressed by an opaque id. Their properties are looked up as
``<namespace>.<broker_id>.<property>`` in a flat property source, usually
built from YAML files with :func:`event_gateway.core.loader.load_properties`:

    event_gateway:
      publication:
        broker:
          main:
            broker-url: mqtts://broker.example.org:8883
            username: gateway
            password: ${BROKER_PASSWORD}
            destination-pattern: "{username}-(.+)"
            circuit-threshold: 5
            circuit-halfOpenAfter: 30000
            retry-maxAttempts: 5
            retry-initInterval: 500
            retry-multiplier: 2
            retry-maxInterval: 10000

Optional properties that are absent stay ``None``; defaults are applied by
the publisher factory, not here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from event_gateway.core.exceptions import SubscriptionConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "event_gateway.publication.broker"

BROKER_URL = "broker-url"
USERNAME = "username"
PASSWORD = "password"
DESTINATION_PATTERN = "destination-pattern"
CIRCUIT_THRESHOLD = "circuit-threshold"
CIRCUIT_HALF_OPEN_AFTER = "circuit-halfOpenAfter"
RETRY_MAX_ATTEMPTS = "retry-maxAttempts"
RETRY_INITIAL_INTERVAL = "retry-initInterval"
RETRY_MULTIPLIER = "retry-multiplier"
RETRY_MAX_INTERVAL = "retry-maxInterval"


@dataclass(frozen=True)
class BrokerConfig:
    url: str
    username: str | None = None
    password: str | None = None
    destination_pattern: str | None = None
    circuit_breaker_threshold: int | None = None
    circuit_breaker_half_open_after_ms: int | None = None
    retry_max_attempts: int | None = None
    retry_initial_interval_ms: int | None = None
    retry_multiplier: float | None = None
    retry_max_interval_ms: int | None = None

    def __post_init__(self) -> None:
        if not self.url or not self.url.strip():
            raise SubscriptionConfigurationError("Broker url is mandatory")

    @property
    def backoff_policy_set(self) -> bool:
        """True when all three exponential backoff fields are set."""
        return (
            self.retry_initial_interval_ms is not None
            and self.retry_multiplier is not None
            and self.retry_max_interval_ms is not None
        )


class PropertiesBrokerConfigResolver:
    """Resolves :class:`BrokerConfig` from ``namespace.broker_id.property`` keys."""

    def __init__(
        self,
        properties: Mapping[str, str],
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self._properties = dict(properties)
        self._namespace = namespace.rstrip(".")

    def resolve(self, broker_id: str | None) -> BrokerConfig:
        """
        Raises:
            SubscriptionConfigurationError: On a blank broker id, a missing
                broker url or an unparsable numeric property.
        """
        if broker_id is None or not broker_id.strip():
            raise SubscriptionConfigurationError(
                f"Empty broker ID provided for broker ID {broker_id}"
            )

        url = self._get(broker_id, BROKER_URL)
        if url is None or not url.strip():
            raise SubscriptionConfigurationError(
                f"Empty {BROKER_URL} provided for broker ID {broker_id}"
            )

        config = BrokerConfig(
            url=url.strip(),
            username=self._get(broker_id, USERNAME),
            password=self._get(broker_id, PASSWORD),
            destination_pattern=self._get(broker_id, DESTINATION_PATTERN),
            circuit_breaker_threshold=self._get_number(broker_id, CIRCUIT_THRESHOLD, int),
            circuit_breaker_half_open_after_ms=self._get_number(
                broker_id, CIRCUIT_HALF_OPEN_AFTER, int
            ),
            retry_max_attempts=self._get_number(broker_id, RETRY_MAX_ATTEMPTS, int),
            retry_initial_interval_ms=self._get_number(
                broker_id, RETRY_INITIAL_INTERVAL, int
            ),
            retry_multiplier=self._get_number(broker_id, RETRY_MULTIPLIER, float),
            retry_max_interval_ms=self._get_number(broker_id, RETRY_MAX_INTERVAL, int),
        )
        logger.debug("Resolved broker config for broker ID %s: %s", broker_id, config.url)
        return config

    def _key(self, broker_id: str, name: str) -> str:
        return f"{self._namespace}.{broker_id}.{name}"

    def _get(self, broker_id: str, name: str) -> str | None:
        return self._properties.get(self._key(broker_id, name))

    def _get_number(
        self, broker_id: str, name: str, parse: Callable[[str], int | float]
    ) -> int | float | None:
        raw = self._get(broker_id, name)
        if raw is None or not raw.strip():
            return None
        try:
            return parse(raw.strip())
        except ValueError as exc:
            raise SubscriptionConfigurationError(
                f"Invalid {name} value '{raw}' provided for broker ID {broker_id}"
            ) from exc
