# event_gateway/contracts/subscription.py
"""
Persisted subscription contracts.

A :class:`Subscription` describes where, how and which events a client wants
republished. Its ``type`` selects the publisher factory that interprets
``config``; each child :class:`Filter` is interpreted by the filter factory
registered under its own ``type``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


@dataclass
class Filter:
    """
    Persisted configuration of one event predicate.

    Attributes:
        type: Filter factory key (e.g. ``event-type``).
        config: Opaque settings interpreted by the filter factory.
        id: Storage identifier, assigned on first save.
    """

    type: str
    config: dict[str, str] = field(default_factory=dict)
    id: str | None = None


@dataclass
class Subscription:
    """
    A client request to republish repository events.

    Attributes:
        type: Publisher factory key (e.g. ``mqtt``).
        config: Opaque settings interpreted by the publisher factory.
        filters: Ordered filters, owned exclusively by this subscription.
        status: ACTIVE subscriptions have a live registration.
        user: Owner, stamped from the caller identity at creation.
        id: Storage identifier, assigned on first save and never changed.
        created_date: Set by storage on first save.
        modified_date: Refreshed on every update.
    """

    type: str
    config: dict[str, str] | None = field(default_factory=dict)
    filters: list[Filter] = field(default_factory=list)
    status: SubscriptionStatus | str | None = SubscriptionStatus.ACTIVE
    user: str | None = None
    id: str | None = None
    created_date: datetime | None = None
    modified_date: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE
