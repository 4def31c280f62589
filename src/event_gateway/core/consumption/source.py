# event_gateway/core/consumption/source.py
"""
Inbound MQTT event source.

Subscribes to the repository event topic and hands every parsed event to
the router. The connection is re-established after failures.

Example:
    source = MqttEventSource(
        config=MqttConfig.from_url("mqtt://localhost:1883"),
        topic="repo/events",
        router=router,
    )
    await source.start()
    ...
    await source.stop()
"""
from __future__ import annotations

import asyncio
import logging
import ssl

import aiomqtt
from pydantic import ValidationError

from event_gateway.contracts.events import RepoEvent
from event_gateway.core.consumption.router import BroadcastEventRouter
from event_gateway.core.publication.mqtt import MqttConfig

logger = logging.getLogger(__name__)


class MqttEventSource:
    def __init__(
        self,
        config: MqttConfig,
        topic: str,
        router: BroadcastEventRouter,
        reconnect_interval: float = 5.0,
    ) -> None:
        self._config = config
        self._topic = topic
        self._router = router
        self._reconnect_interval = reconnect_interval

        self._running = False
        self._listener_task: asyncio.Task | None = None

        self._message_count = 0
        self._error_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def message_count(self) -> int:
        """Total messages received."""
        return self._message_count

    @property
    def error_count(self) -> int:
        """Messages that could not be parsed into events."""
        return self._error_count

    async def start(self) -> None:
        if self._running:
            logger.warning("Event source already running")
            return

        self._running = True
        self._listener_task = asyncio.create_task(
            self._listener_loop(),
            name="mqtt-event-source",
        )
        logger.info("MQTT event source started for topic: %s", self._topic)

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None

        logger.info("MQTT event source stopped")

    async def _listener_loop(self) -> None:
        while self._running:
            try:
                await self._connect_and_listen()
            except asyncio.CancelledError:
                logger.debug("Event source listener cancelled")
                break
            except Exception as exc:
                logger.error(
                    "MQTT connection error: %s, reconnecting in %ss",
                    exc,
                    self._reconnect_interval,
                )
                if self._running:
                    await asyncio.sleep(self._reconnect_interval)

    async def _connect_and_listen(self) -> None:
        async with aiomqtt.Client(
            hostname=self._config.host,
            port=self._config.port,
            identifier=f"{self._config.client_id}-sub",
            username=self._config.username,
            password=self._config.password,
            tls_context=ssl.create_default_context() if self._config.use_tls else None,
            keepalive=self._config.keepalive,
        ) as client:
            logger.info(
                "Connected to MQTT broker %s:%d",
                self._config.host,
                self._config.port,
            )
            await client.subscribe(self._topic, qos=self._config.qos)

            async for message in client.messages:
                if not self._running:
                    break
                await self.handle_payload(message.payload)

    async def handle_payload(self, payload: bytes | str | None) -> None:
        """Parse one message payload and route the resulting event."""
        self._message_count += 1
        if payload is None:
            self._error_count += 1
            logger.warning("Empty event payload on '%s'", self._topic)
            return

        try:
            event = RepoEvent.model_validate_json(payload)
        except ValidationError as exc:
            self._error_count += 1
            logger.warning("Invalid event payload on '%s': %s", self._topic, exc)
            return

        await self._router.route_event(event)
