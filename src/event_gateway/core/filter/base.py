# event_gateway/core/filter/base.py
"""
Composable event predicates.

Filters are immutable. ``and_`` and ``or_`` (also ``&`` and ``|``) build new
predicates and never modify their operands:

    accepts = EventTypeFilter.of(NODE_CREATED) | EventTypeFilter.of(NODE_UPDATED)
    accepts = accepts & NodeTypeFilter.of("cm:content")
    accepts.test(event)
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from event_gateway.contracts.events import RepoEvent


class EventFilter(ABC):
    __slots__ = ()

    @abstractmethod
    def test(self, event: RepoEvent) -> bool:
        ...

    def and_(self, other: EventFilter) -> EventFilter:
        return AllOf((self, other))

    def or_(self, other: EventFilter) -> EventFilter:
        return AnyOf((self, other))

    def __and__(self, other: EventFilter) -> EventFilter:
        return self.and_(other)

    def __or__(self, other: EventFilter) -> EventFilter:
        return self.or_(other)


class AllOf(EventFilter):
    """True iff every operand accepts. No operands accept everything."""

    __slots__ = ("_filters",)

    def __init__(self, filters: Iterable[EventFilter]) -> None:
        self._filters = tuple(filters)

    def test(self, event: RepoEvent) -> bool:
        return all(f.test(event) for f in self._filters)

    def __repr__(self) -> str:
        return f"AllOf({list(self._filters)!r})"


class AnyOf(EventFilter):
    """True iff at least one operand accepts."""

    __slots__ = ("_filters",)

    def __init__(self, filters: Iterable[EventFilter]) -> None:
        self._filters = tuple(filters)

    def test(self, event: RepoEvent) -> bool:
        return any(f.test(event) for f in self._filters)

    def __repr__(self) -> str:
        return f"AnyOf({list(self._filters)!r})"
