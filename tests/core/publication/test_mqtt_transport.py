import aiomqtt
import pytest

from event_gateway.core.exceptions import EventPublicationError
from event_gateway.core.publication import mqtt as mqtt_module
from event_gateway.core.publication.mqtt import MqttConfig, MqttTransport


class FakeClient:
    instances: list["FakeClient"] = []
    fail_next_publish = False

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.published: list[dict] = []
        self.entered = False
        self.exited = False
        FakeClient.instances.append(self)

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, *exc):
        self.exited = True

    async def publish(self, topic, payload=None, qos=0, retain=False, properties=None):
        if FakeClient.fail_next_publish:
            FakeClient.fail_next_publish = False
            raise aiomqtt.MqttError("connection lost")
        self.published.append(
            {"topic": topic, "payload": payload, "qos": qos, "properties": properties}
        )


@pytest.fixture
def fake_client(monkeypatch):
    FakeClient.instances = []
    FakeClient.fail_next_publish = False
    monkeypatch.setattr(mqtt_module.aiomqtt, "Client", FakeClient)
    return FakeClient


class TestMqttTransport:
    @pytest.mark.asyncio
    async def test_connects_lazily_with_v5(self, fake_client):
        transport = MqttTransport(MqttConfig(host="mq", port=1884, username="u", password="p"))

        await transport.send("alice-01", b"{}", "evt-1")

        client = fake_client.instances[0]
        assert client.entered
        assert client.kwargs["hostname"] == "mq"
        assert client.kwargs["port"] == 1884
        assert client.kwargs["protocol"] == aiomqtt.ProtocolVersion.V5

    @pytest.mark.asyncio
    async def test_event_id_is_sent_as_user_property(self, fake_client):
        transport = MqttTransport(MqttConfig())

        await transport.send("alice-01", b"payload", "evt-1")

        message = fake_client.instances[0].published[0]
        assert message["topic"] == "alice-01"
        assert message["qos"] == 1
        assert message["properties"].UserProperty == [("event-id", "evt-1")]

    @pytest.mark.asyncio
    async def test_reconnects_after_publish_failure(self, fake_client):
        transport = MqttTransport(MqttConfig())
        fake_client.fail_next_publish = True

        with pytest.raises(EventPublicationError, match="connection lost"):
            await transport.send("t", b"1", None)
        assert not transport.is_connected

        await transport.send("t", b"2", None)

        assert len(fake_client.instances) == 2
        assert fake_client.instances[0].exited

    @pytest.mark.asyncio
    async def test_closed_transport_refuses_to_send(self, fake_client):
        transport = MqttTransport(MqttConfig())
        await transport.connect()

        await transport.close()

        assert fake_client.instances[0].exited
        with pytest.raises(EventPublicationError, match="closed"):
            await transport.send("t", b"1", None)
