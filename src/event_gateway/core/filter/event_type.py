# event_gateway/core/filter/event_type.py
from __future__ import annotations

import re
from functools import reduce
from typing import Mapping

from event_gateway.contracts.events import RepoEvent
from event_gateway.core.exceptions import FilterConfigurationError
from event_gateway.core.filter.base import EventFilter

EVENT_TYPE_FILTER = "event-type"
EVENT_TYPES_KEY = "eventTypes"

NODE_CREATED = "org.alfresco.event.node.Created"
NODE_UPDATED = "org.alfresco.event.node.Updated"
NODE_DELETED = "org.alfresco.event.node.Deleted"

_LIST_SEPARATOR = re.compile(r"\s*,\s*")


def split_list(value: str | None) -> list[str]:
    """Split a comma separated setting, trimming whitespace and empty items."""
    if not value:
        return []
    return [item for item in _LIST_SEPARATOR.split(value.strip()) if item]


class EventTypeFilter(EventFilter):
    """Accepts events whose ``type`` equals the accepted type."""

    __slots__ = ("_accepted_type",)

    def __init__(self, accepted_type: str) -> None:
        self._accepted_type = accepted_type

    @classmethod
    def of(cls, accepted_type: str) -> EventTypeFilter:
        return cls(accepted_type)

    @property
    def accepted_type(self) -> str:
        return self._accepted_type

    def test(self, event: RepoEvent) -> bool:
        return event.type == self._accepted_type

    def __repr__(self) -> str:
        return f"EventTypeFilter({self._accepted_type!r})"


def event_type_filter_factory(config: Mapping[str, str]) -> EventFilter:
    """
    Build the OR of one :class:`EventTypeFilter` per listed event type.

    Raises:
        FilterConfigurationError: If ``eventTypes`` is missing or empty.
    """
    event_types = split_list((config or {}).get(EVENT_TYPES_KEY))
    if not event_types:
        raise FilterConfigurationError(
            "Event type filter creation requested with no event types"
        )
    return reduce(
        lambda acc, f: acc.or_(f),
        (EventTypeFilter.of(t) for t in event_types),
    )
