# event_gateway/core/filter/node_type.py
from __future__ import annotations

from functools import reduce
from typing import Mapping

from event_gateway.contracts.events import RepoEvent
from event_gateway.core.exceptions import FilterConfigurationError
from event_gateway.core.filter.base import EventFilter
from event_gateway.core.filter.event_type import split_list

NODE_TYPE_FILTER = "node-type"
NODE_TYPES_KEY = "nodeTypes"


class NodeTypeFilter(EventFilter):
    """
    Accepts events about a node of the given type.

    Events without data, or whose resource is not a node, are rejected.
    """

    __slots__ = ("_accepted_node_type",)

    def __init__(self, accepted_node_type: str) -> None:
        self._accepted_node_type = accepted_node_type

    @classmethod
    def of(cls, accepted_node_type: str) -> NodeTypeFilter:
        return cls(accepted_node_type)

    def test(self, event: RepoEvent) -> bool:
        node = event.node_resource
        return node is not None and node.node_type == self._accepted_node_type

    def __repr__(self) -> str:
        return f"NodeTypeFilter({self._accepted_node_type!r})"


def node_type_filter_factory(config: Mapping[str, str]) -> EventFilter:
    """
    Raises:
        FilterConfigurationError: If ``nodeTypes`` is missing or empty.
    """
    node_types = split_list((config or {}).get(NODE_TYPES_KEY))
    if not node_types:
        raise FilterConfigurationError(
            "Node type filter creation requested with no node types"
        )
    return reduce(
        lambda acc, f: acc.or_(f),
        (NodeTypeFilter.of(t) for t in node_types),
    )
