# event_gateway/core/bootstrap.py
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_bootstrap_depth: ContextVar[int] = ContextVar("event_gateway_bootstrap", default=0)


class BootstrapState:
    """
    Marks the startup window in which persisted subscriptions are rehydrated.

    Destination pattern validation is skipped while bootstrapping so that
    subscriptions accepted under an older pattern still come back up. The
    flag is context-local. Only the task running the rehydration, and tasks
    it spawns, see it. Concurrent lifecycle calls are still validated.
    """

    @property
    def is_bootstrapping(self) -> bool:
        return _bootstrap_depth.get() > 0

    @contextmanager
    def bootstrapping(self) -> Iterator[None]:
        token = _bootstrap_depth.set(_bootstrap_depth.get() + 1)
        try:
            yield
        finally:
            _bootstrap_depth.reset(token)
