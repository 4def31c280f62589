# event_gateway/core/publication/mqtt.py
"""
MQTT transport and publisher.

Every subscription gets its own :class:`MqttTransport`, i.e. its own broker
connection, so that one subscription's broker problems never stall another.
Events are published with MQTT v5 and carry the event id as the
``event-id`` user property.

Both destination kinds publish to the topic named by the destination.
Queue semantics are obtained on the consuming side through shared
subscriptions (``$share/<group>/<topic>``).

Usage:
    transport = MqttTransport(MqttConfig.from_url("mqtt://localhost:1883"))
    publisher = MqttSubscriptionPublisher(
        transport=transport,
        destination=Destination(DestinationKind.TOPIC, "alice-events"),
        retry=RetryPolicy.fixed(3, 1.0),
        breaker=CircuitBreaker("alice-events"),
    )
    await publisher.publish(event)
    await publisher.release()
"""
from __future__ import annotations

import asyncio
import logging
import ssl
from dataclasses import dataclass
from urllib.parse import urlsplit
from uuid import uuid4

import aiomqtt
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

from event_gateway.contracts.events import RepoEvent
from event_gateway.contracts.publisher import Transport
from event_gateway.core.exceptions import (
    EventPublicationError,
    SubscriptionConfigurationError,
)
from event_gateway.core.publication.destination import Destination
from event_gateway.core.publication.resilience import CircuitBreaker, RetryPolicy

logger = logging.getLogger(__name__)

EVENT_ID_PROPERTY = "event-id"

_PLAIN_SCHEMES = {"mqtt", "tcp"}
_TLS_SCHEMES = {"mqtts", "ssl", "tls"}


@dataclass
class MqttConfig:
    """
    Connection settings of one MQTT connection.

    Attributes:
        host: Broker hostname.
        port: Broker port (1883, or 8883 for TLS).
        client_id: Unique client identifier. Auto-generated if not provided.
        username: Optional authentication username.
        password: Optional authentication password.
        use_tls: Whether to use TLS encryption.
        keepalive: Keepalive interval in seconds.
        qos: QoS level used for publishing.
    """

    host: str = "localhost"
    port: int = 1883
    client_id: str | None = None
    username: str | None = None
    password: str | None = None
    use_tls: bool = False
    keepalive: int = 60
    qos: int = 1

    def __post_init__(self):
        if self.client_id is None:
            self.client_id = f"event-gateway-{uuid4().hex[:8]}"

    @classmethod
    def from_url(
        cls,
        url: str,
        username: str | None = None,
        password: str | None = None,
        client_id: str | None = None,
    ) -> MqttConfig:
        """
        Build a config from ``mqtt://host[:port]`` or ``mqtts://host[:port]``.

        Raises:
            SubscriptionConfigurationError: On an unsupported scheme or a
                url without host.
        """
        parts = urlsplit(url.strip())
        scheme = parts.scheme.lower()
        if scheme not in _PLAIN_SCHEMES | _TLS_SCHEMES:
            raise SubscriptionConfigurationError(f"Unsupported broker url {url}")
        if not parts.hostname:
            raise SubscriptionConfigurationError(f"No host in broker url {url}")

        use_tls = scheme in _TLS_SCHEMES
        try:
            port = parts.port
        except ValueError as exc:
            raise SubscriptionConfigurationError(f"Invalid port in broker url {url}") from exc

        return cls(
            host=parts.hostname,
            port=port or (8883 if use_tls else 1883),
            client_id=client_id,
            username=(username if username is not None else parts.username) or None,
            password=(password if password is not None else parts.password) or None,
            use_tls=use_tls,
        )


class MqttTransport(Transport):
    """One MQTT v5 connection, opened lazily and reopened after failures."""

    def __init__(self, config: MqttConfig) -> None:
        self._config = config
        self._client: aiomqtt.Client | None = None
        self._connected = False
        self._closed = False
        self._lock = asyncio.Lock()

    @property
    def config(self) -> MqttConfig:
        return self._config

    @property
    def is_connected(self) -> bool:
        return self._connected and self._client is not None

    def _build_tls_context(self) -> ssl.SSLContext | None:
        if not self._config.use_tls:
            return None
        return ssl.create_default_context()

    async def _connect_internal(self) -> None:
        logger.info(
            "Connecting to MQTT broker at %s:%d",
            self._config.host,
            self._config.port,
        )
        self._client = aiomqtt.Client(
            hostname=self._config.host,
            port=self._config.port,
            identifier=self._config.client_id,
            username=self._config.username,
            password=self._config.password,
            protocol=aiomqtt.ProtocolVersion.V5,
            tls_context=self._build_tls_context(),
            keepalive=self._config.keepalive,
        )
        try:
            await self._client.__aenter__()
        except aiomqtt.MqttError as exc:
            self._client = None
            raise EventPublicationError(
                f"Failed to connect to MQTT broker {self._config.host}:{self._config.port}: {exc}"
            ) from exc
        self._connected = True
        logger.info(
            "Connected to MQTT broker %s:%d as %s",
            self._config.host,
            self._config.port,
            self._config.client_id,
        )

    async def _disconnect_internal(self) -> None:
        if self._client is not None:
            try:
                await self._client.__aexit__(None, None, None)
            except aiomqtt.MqttError as exc:
                logger.warning("Error during MQTT disconnect: %s", exc)
            finally:
                self._client = None
                self._connected = False

    async def connect(self) -> None:
        async with self._lock:
            if self._closed:
                raise EventPublicationError("Transport has been closed")
            if not self._connected:
                await self._connect_internal()

    async def send(self, destination: str, payload: bytes, key: str | None) -> None:
        """
        Raises:
            EventPublicationError: If the broker cannot be reached or
                rejects the message.
        """
        await self.connect()
        assert self._client is not None

        properties = Properties(PacketTypes.PUBLISH)
        if key is not None:
            properties.UserProperty = [(EVENT_ID_PROPERTY, key)]

        try:
            await self._client.publish(
                destination,
                payload=payload,
                qos=self._config.qos,
                properties=properties,
            )
        except aiomqtt.MqttError as exc:
            async with self._lock:
                await self._disconnect_internal()
            raise EventPublicationError(f"Failed to publish to {destination}: {exc}") from exc

        logger.debug(
            "Published to %s (qos=%d, size=%d bytes)",
            destination,
            self._config.qos,
            len(payload),
        )

    async def close(self) -> None:
        async with self._lock:
            self._closed = True
            await self._disconnect_internal()


class MqttSubscriptionPublisher:
    """Publishes events of one subscription to one destination."""

    def __init__(
        self,
        transport: Transport,
        destination: Destination,
        retry: RetryPolicy,
        breaker: CircuitBreaker,
    ) -> None:
        self._transport = transport
        self._destination = destination
        self._retry = retry
        self._breaker = breaker
        self._released = False

    @property
    def destination(self) -> Destination:
        return self._destination

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def is_released(self) -> bool:
        return self._released

    async def publish(self, event: RepoEvent) -> None:
        """
        Raises:
            EventPublicationError: When retries are exhausted, the circuit
                is open or the publisher was released.
        """
        if self._released:
            raise EventPublicationError(
                f"Publisher for {self._destination.name} has been released"
            )
        payload = event.to_json().encode("utf-8")
        await self._breaker.call(
            self._retry.call,
            self._transport.send,
            self._destination.name,
            payload,
            event.id,
        )

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        await self._transport.close()
        logger.info("Released publisher for %s", self._destination.name)
