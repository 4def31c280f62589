# event_gateway/core/consumption/registry.py
"""
Registry of event consumers.

Every registered consumer receives every routed event. Membership is by
identity: registering the same object twice keeps one entry.
"""
from __future__ import annotations

import logging
import threading
from typing import Iterator

from event_gateway.contracts.consumer import EventConsumer

logger = logging.getLogger(__name__)


class EventConsumerRegistry:
    def __init__(self) -> None:
        self._consumers: dict[int, EventConsumer] = {}
        self._lock = threading.RLock()

    def register(self, consumer: EventConsumer) -> None:
        """
        Add a consumer. Registering an already registered consumer is a no-op.

        Raises:
            ValueError: If consumer is None.
        """
        if consumer is None:
            raise ValueError("Cannot register a None consumer")

        with self._lock:
            key = id(consumer)
            if key in self._consumers:
                logger.info("Event consumer %r already registered", consumer)
                return
            self._consumers[key] = consumer
        logger.info("Event consumer %r successfully registered", consumer)

    def deregister(self, consumer: EventConsumer) -> None:
        """
        Remove a consumer. Unknown consumers are ignored.

        Raises:
            ValueError: If consumer is None.
        """
        if consumer is None:
            raise ValueError("Cannot deregister a None consumer")

        with self._lock:
            removed = self._consumers.pop(id(consumer), None)
        if removed is None:
            logger.info("Event consumer %r not registered", consumer)
        else:
            logger.info("Event consumer %r successfully deregistered", consumer)

    def get_all(self) -> Iterator[EventConsumer]:
        """Iterate over the consumers registered at call time."""
        with self._lock:
            snapshot = list(self._consumers.values())
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._consumers)

    def __contains__(self, consumer: object) -> bool:
        with self._lock:
            return self._consumers.get(id(consumer)) is consumer
