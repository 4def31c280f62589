# event_gateway/core/filter/factory.py
"""
Filter factory registry.

Maps a persisted filter ``type`` to the function that builds its
:class:`EventFilter` from the filter ``config``. New filter types are added
by registering a factory, not by subclassing:

    registry = FilterFactoryRegistry.with_defaults()
    registry.register("my-type", lambda config: MyFilter(config["x"]))
    event_filter = registry.get_filter(Filter(type="my-type", config={"x": "1"}))
"""
from __future__ import annotations

import logging
from typing import Callable, Iterator, Mapping

from event_gateway.contracts.subscription import Filter
from event_gateway.core.exceptions import UnsupportedFilterTypeError
from event_gateway.core.filter.base import EventFilter
from event_gateway.core.filter.event_type import (
    EVENT_TYPE_FILTER,
    event_type_filter_factory,
)
from event_gateway.core.filter.node_type import NODE_TYPE_FILTER, node_type_filter_factory

logger = logging.getLogger(__name__)

FilterFactory = Callable[[Mapping[str, str]], EventFilter]


class FilterFactoryRegistry:
    def __init__(self) -> None:
        self._factories: dict[str, FilterFactory] = {}

    @classmethod
    def with_defaults(cls) -> FilterFactoryRegistry:
        registry = cls()
        registry.register(EVENT_TYPE_FILTER, event_type_filter_factory)
        registry.register(NODE_TYPE_FILTER, node_type_filter_factory)
        return registry

    def register(self, filter_type: str, factory: FilterFactory) -> None:
        """
        Raises:
            ValueError: If a factory is already registered for the type.
        """
        if filter_type in self._factories:
            raise ValueError(f"Filter factory '{filter_type}' already registered")
        self._factories[filter_type] = factory
        logger.info("Registered filter factory: %s", filter_type)

    def get_filter(self, filter_: Filter) -> EventFilter:
        """
        Build the predicate for a persisted filter.

        Raises:
            UnsupportedFilterTypeError: If no factory handles the filter type.
            FilterConfigurationError: If the factory rejects the config.
        """
        factory = self._factories.get(filter_.type)
        if factory is None:
            raise UnsupportedFilterTypeError(filter_.type)
        return factory(filter_.config or {})

    def __contains__(self, filter_type: str) -> bool:
        return filter_type in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._factories))

    def __len__(self) -> int:
        return len(self._factories)
