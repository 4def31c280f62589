# tests/helpers/fakes.py
from __future__ import annotations

from typing import Any

from event_gateway.contracts.events import RepoEvent
from event_gateway.contracts.subscription import Filter, Subscription
from event_gateway.core.exceptions import EventPublicationError
from event_gateway.core.filter import NODE_CREATED, NODE_DELETED


def make_event(
    event_type: str = NODE_CREATED,
    node_type: str | None = "cm:content",
    properties: dict[str, Any] | None = None,
    event_id: str = "event-1",
) -> RepoEvent:
    resource: dict[str, Any] | None = None
    if node_type is not None:
        resource = {
            "@type": "NodeResource",
            "id": "node-1",
            "name": "report.pdf",
            "nodeType": node_type,
            "isFile": True,
            "isFolder": False,
            "properties": properties or {},
        }
    return RepoEvent.model_validate(
        {
            "specversion": "1.0",
            "type": event_type,
            "id": event_id,
            "source": "/repository/ws-1",
            "time": "2024-03-01T10:00:00Z",
            "data": {"eventGroupId": "group-1", "resource": resource},
        }
    )


def make_person_deleted_event(username: str) -> RepoEvent:
    return make_event(
        event_type=NODE_DELETED,
        node_type="cm:person",
        properties={"cm:userName": username},
    )


def make_subscription(
    destination: str = "alice-events",
    broker_id: str = "main",
    filters: list[Filter] | None = None,
    user: str | None = "alice",
) -> Subscription:
    return Subscription(
        type="mqtt",
        config={"broker-id": broker_id, "destination": destination},
        filters=filters or [],
        user=user,
    )


class FakeTransport:
    """In-memory transport that can be told to fail a number of sends."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.sent: list[tuple[str, bytes, str | None]] = []
        self.connect_calls = 0
        self.close_calls = 0

    async def connect(self) -> None:
        self.connect_calls += 1

    async def send(self, destination: str, payload: bytes, key: str | None) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise EventPublicationError("broker unavailable")
        self.sent.append((destination, payload, key))

    async def close(self) -> None:
        self.close_calls += 1


class TransportRecorder:
    """Transport factory keeping every transport it builds."""

    def __init__(self) -> None:
        self.transports: list[FakeTransport] = []
        self.configs: list[Any] = []

    def __call__(self, config: Any) -> FakeTransport:
        transport = FakeTransport()
        self.configs.append(config)
        self.transports.append(transport)
        return transport


class RecordingConsumer:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events: list[RepoEvent] = []

    async def consume_event(self, event: RepoEvent) -> None:
        self.events.append(event)
        if self.fail:
            raise RuntimeError("consumer failure")
