import asyncio

import pytest

from event_gateway.core.consumption.registry import EventConsumerRegistry
from event_gateway.core.consumption.router import BroadcastEventRouter
from event_gateway.core.consumption.source import MqttEventSource
from event_gateway.core.publication.mqtt import MqttConfig
from tests.helpers.fakes import RecordingConsumer, make_event


@pytest.fixture
def routed():
    registry = EventConsumerRegistry()
    consumer = RecordingConsumer()
    registry.register(consumer)
    return consumer, BroadcastEventRouter(registry)


class TestMqttEventSource:
    @pytest.mark.asyncio
    async def test_valid_payload_is_routed(self, routed):
        consumer, router = routed
        source = MqttEventSource(MqttConfig(), "repo/events", router)
        event = make_event(event_id="evt-9")

        await source.handle_payload(event.to_json().encode())
        await router.pool.join()

        assert [e.id for e in consumer.events] == ["evt-9"]
        assert source.message_count == 1
        await router.stop()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [b"not json", b'{"id": "missing type"}', None])
    async def test_invalid_payload_is_skipped(self, routed, payload):
        consumer, router = routed
        source = MqttEventSource(MqttConfig(), "repo/events", router)

        await source.handle_payload(payload)

        assert consumer.events == []
        assert source.error_count == 1
        assert router.routed_count == 0

    @pytest.mark.asyncio
    async def test_listener_reconnects_after_unexpected_error(self, routed, monkeypatch):
        _, router = routed
        source = MqttEventSource(MqttConfig(), "repo/events", router, reconnect_interval=0)
        attempts = []
        reconnected = asyncio.Event()

        async def connect_and_listen() -> None:
            attempts.append(len(attempts))
            if len(attempts) == 1:
                raise RuntimeError("decoder crashed")
            reconnected.set()
            await asyncio.Event().wait()

        monkeypatch.setattr(source, "_connect_and_listen", connect_and_listen)

        await source.start()
        await asyncio.wait_for(reconnected.wait(), timeout=1.0)
        await source.stop()

        assert len(attempts) == 2
        assert not source.is_running
