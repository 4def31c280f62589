"""Event filter algebra and built-in filters."""
from event_gateway.core.filter.base import AllOf, AnyOf, EventFilter
from event_gateway.core.filter.event_type import (
    EVENT_TYPE_FILTER,
    NODE_CREATED,
    NODE_DELETED,
    NODE_UPDATED,
    EventTypeFilter,
    event_type_filter_factory,
)
from event_gateway.core.filter.factory import FilterFactoryRegistry
from event_gateway.core.filter.node_type import (
    NODE_TYPE_FILTER,
    NodeTypeFilter,
    node_type_filter_factory,
)

__all__ = [
    "AllOf", "AnyOf", "EventFilter",
    "EVENT_TYPE_FILTER", "NODE_CREATED", "NODE_DELETED", "NODE_UPDATED",
    "EventTypeFilter", "event_type_filter_factory",
    "FilterFactoryRegistry",
    "NODE_TYPE_FILTER", "NodeTypeFilter", "node_type_filter_factory",
]
