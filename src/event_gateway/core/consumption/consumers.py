# event_gateway/core/consumption/consumers.py
"""Built-in event consumers."""
from __future__ import annotations

import logging
from typing import Awaitable, Iterable, Protocol, runtime_checkable

from event_gateway.contracts.events import RepoEvent
from event_gateway.core.filter import NODE_DELETED, EventTypeFilter, NodeTypeFilter

logger = logging.getLogger(__name__)

PERSON_NODE_TYPE = "cm:person"
USERNAME_PROPERTY = "cm:userName"


class LoggingEventConsumer:
    """Logs every event once, at the configured level."""

    def __init__(
        self,
        level: str | int = "INFO",
        message_template: str = "Consuming the event %s",
        target: logging.Logger | None = None,
    ) -> None:
        self._level = _resolve_level(level)
        self._message_template = message_template
        self._logger = target or logger

    @property
    def level(self) -> int:
        return self._level

    async def consume_event(self, event: RepoEvent) -> None:
        self._logger.log(self._level, self._message_template, event.to_json())

    def __repr__(self) -> str:
        return f"LoggingEventConsumer(level={logging.getLevelName(self._level)})"


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        logger.warning("Unknown log level %s, using INFO", level)
        return logging.INFO
    return resolved


@runtime_checkable
class UserDeletionHandler(Protocol):
    def user_deleted(self, username: str) -> Awaitable[None]:
        ...


class UserDeletionEventConsumer:
    """Notifies the deletion handlers when a person node is deleted."""

    def __init__(self, handlers: Iterable[UserDeletionHandler] = ()) -> None:
        self._handlers = list(handlers)
        self._filter = EventTypeFilter.of(NODE_DELETED).and_(
            NodeTypeFilter.of(PERSON_NODE_TYPE)
        )

    def add_handler(self, handler: UserDeletionHandler) -> None:
        self._handlers.append(handler)

    async def consume_event(self, event: RepoEvent) -> None:
        if not self._filter.test(event):
            return

        node = event.node_resource
        properties = (node.properties if node else None) or {}
        username = properties.get(USERNAME_PROPERTY)
        if not username:
            logger.warning("Deleted person event %s carries no %s", event.id, USERNAME_PROPERTY)
            return

        logger.info("User %s deleted, notifying %d handler(s)", username, len(self._handlers))
        for handler in self._handlers:
            await handler.user_deleted(username)

    def __repr__(self) -> str:
        return "UserDeletionEventConsumer()"
