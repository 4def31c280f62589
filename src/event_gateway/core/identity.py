# event_gateway/core/identity.py
"""
Caller identity.

The API layer (or any other caller) binds the authenticated username for the
duration of a request:

    with identity.as_user("alice"):
        await service.create_subscription(subscription)
"""
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_current_user: ContextVar[str | None] = ContextVar("event_gateway_user", default=None)


class ContextIdentityProvider:
    def current_user(self) -> str | None:
        return _current_user.get()

    @contextmanager
    def as_user(self, username: str | None) -> Iterator[None]:
        token = _current_user.set(username)
        try:
            yield
        finally:
            _current_user.reset(token)
