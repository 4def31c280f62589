# event_gateway/core/publication/destination.py
"""
Destination resolution and validation.

A destination spec has the form ``[KIND:]NAME`` where KIND is ``topic`` or
``queue``. An unrecognized prefix is not a kind: the whole string is the
name and the kind defaults to topic.

    >>> resolve_destination("queue:orders", DestinationContext())
    Destination(kind=<DestinationKind.QUEUE: 'queue'>, name='orders')
    >>> resolve_destination("bogus:orders", DestinationContext())
    Destination(kind=<DestinationKind.TOPIC: 'topic'>, name='bogus:orders')

When the broker declares a destination pattern, the resolved name must fully
match it after the literal ``{username}`` placeholder is replaced by the
subscription owner.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from event_gateway.core.bootstrap import BootstrapState
from event_gateway.core.exceptions import SubscriptionConfigurationError

logger = logging.getLogger(__name__)

USERNAME_PLACEHOLDER = "{username}"


class DestinationKind(str, Enum):
    TOPIC = "topic"
    QUEUE = "queue"


@dataclass(frozen=True)
class Destination:
    kind: DestinationKind
    name: str


@dataclass(frozen=True)
class DestinationContext:
    """Owner and broker pattern a destination is resolved against."""

    username: str | None = None
    destination_pattern: str | None = None


def parse_destination(spec: str | None) -> Destination:
    """
    Raises:
        SubscriptionConfigurationError: If the spec is blank.
    """
    if spec is None or not spec.strip():
        raise SubscriptionConfigurationError("Empty destination provided")

    prefix, sep, remainder = spec.partition(":")
    if sep:
        try:
            return Destination(DestinationKind(prefix), remainder)
        except ValueError:
            pass
    return Destination(DestinationKind.TOPIC, spec)


def validate_destination(destination: Destination, context: DestinationContext) -> None:
    """
    Check the destination name against the broker's pattern, if any.

    Raises:
        SubscriptionConfigurationError: On a blank name, a malformed pattern
            or a name that does not match.
    """
    pattern = context.destination_pattern
    if pattern is None or not pattern.strip():
        return

    if not destination.name or not destination.name.strip():
        raise SubscriptionConfigurationError(
            f"Empty {destination.kind.value} destination name provided"
        )

    expanded = pattern.replace(USERNAME_PLACEHOLDER, re.escape(context.username or ""))
    try:
        compiled = re.compile(expanded)
    except re.error as exc:
        raise SubscriptionConfigurationError(
            f"Invalid destination pattern {pattern}"
        ) from exc

    if compiled.fullmatch(destination.name) is None:
        raise SubscriptionConfigurationError(
            f"The {destination.kind.value} destination name {destination.name} "
            f"does not match the pattern {pattern}"
        )


class DestinationResolver:
    """Parses destination specs and validates them outside of bootstrap."""

    def __init__(self, bootstrap: BootstrapState | None = None) -> None:
        self._bootstrap = bootstrap or BootstrapState()

    def resolve(self, spec: str | None, context: DestinationContext) -> Destination:
        destination = parse_destination(spec)
        if self._bootstrap.is_bootstrapping:
            logger.debug("Skipping validation of destination %s during bootstrap", spec)
        else:
            validate_destination(destination, context)
        return destination


def resolve_destination(
    spec: str | None, context: DestinationContext, validate: bool = True
) -> Destination:
    destination = parse_destination(spec)
    if validate:
        validate_destination(destination, context)
    return destination
