# event_gateway/contracts/consumer.py
"""
Consumer contract.

Every component registered with the consumer registry receives every
ingested event through :meth:`EventConsumer.consume_event`.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from event_gateway.contracts.events import RepoEvent


@runtime_checkable
class EventConsumer(Protocol):
    async def consume_event(self, event: RepoEvent) -> None:
        ...
