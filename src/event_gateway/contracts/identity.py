# event_gateway/contracts/identity.py
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IdentityProvider(Protocol):
    """Resolves the username of the current caller, if any."""

    def current_user(self) -> str | None:
        ...
