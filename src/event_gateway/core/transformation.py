# event_gateway/core/transformation.py
"""
Process-wide event transformation chain.

Transformations are applied in registration order, each one receiving the
output of the previous one. They must not mutate their input; use
``event.model_copy(update=...)`` to derive a new event.
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator

from event_gateway.contracts.events import RepoEvent

logger = logging.getLogger(__name__)

EventTransformation = Callable[[RepoEvent], RepoEvent]


class TransformationChain:
    def __init__(self, transformations: Iterable[EventTransformation] = ()) -> None:
        self._transformations: list[EventTransformation] = list(transformations)

    def add(self, transformation: EventTransformation) -> None:
        self._transformations.append(transformation)
        logger.info(
            "Added event transformation %s",
            getattr(transformation, "__name__", repr(transformation)),
        )

    def apply(self, event: RepoEvent) -> RepoEvent:
        for transformation in self._transformations:
            event = transformation(event)
        return event

    def __iter__(self) -> Iterator[EventTransformation]:
        return iter(list(self._transformations))

    def __len__(self) -> int:
        return len(self._transformations)
