# event_gateway/core/publication/resilience.py
"""
Retry and circuit breaker policies for publishers.

A publish attempt is wrapped with the retry loop innermost and the circuit
breaker outermost, so the breaker counts one failure per publish whose
retries were exhausted:

    breaker = CircuitBreaker("orders", threshold=5, half_open_after=30.0)
    retry = RetryPolicy.fixed(max_attempts=3, interval=1.0)

    await breaker.call(retry.call, transport.send, topic, payload, key)
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from event_gateway.core.exceptions import CircuitOpenError, EventPublicationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attributes:
        max_attempts: Total attempts, the first one included.
        initial_interval: Delay in seconds after the first failure.
        multiplier: Growth factor of the delay; 1.0 means fixed delay.
        max_interval: Upper bound of the delay in seconds.
    """

    max_attempts: int = 3
    initial_interval: float = 1.0
    multiplier: float = 1.0
    max_interval: float | None = None
    retry_on: tuple[type[BaseException], ...] = (EventPublicationError,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def fixed(cls, max_attempts: int, interval: float) -> RetryPolicy:
        return cls(max_attempts=max_attempts, initial_interval=interval)

    @classmethod
    def exponential(
        cls,
        max_attempts: int,
        initial_interval: float,
        multiplier: float,
        max_interval: float,
    ) -> RetryPolicy:
        return cls(
            max_attempts=max_attempts,
            initial_interval=initial_interval,
            multiplier=multiplier,
            max_interval=max_interval,
        )

    def delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (0 for the first retry)."""
        delay = self.initial_interval * (self.multiplier ** retry_number)
        if self.max_interval is not None:
            delay = min(delay, self.max_interval)
        return delay

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args,
        sleep: Sleep = asyncio.sleep,
        **kwargs,
    ) -> T:
        for attempt in range(self.max_attempts):
            try:
                return await func(*args, **kwargs)
            except self.retry_on as exc:
                if attempt + 1 >= self.max_attempts:
                    raise
                delay = self.delay(attempt)
                logger.warning(
                    "Attempt %d/%d failed: %s, retrying in %.3fs",
                    attempt + 1,
                    self.max_attempts,
                    exc,
                    delay,
                )
                await sleep(delay)
        raise AssertionError("unreachable")


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Failure gate around a publisher.

    - CLOSED: calls pass through; ``threshold`` consecutive failures open it.
    - OPEN: calls are rejected with :class:`CircuitOpenError` until
      ``half_open_after`` seconds have passed since the last failure.
    - HALF_OPEN: a single probe call is let through. Success closes the
      circuit, failure opens it again.
    """

    def __init__(
        self,
        name: str,
        threshold: int = 5,
        half_open_after: float = 1.0,
        clock: Clock = time.monotonic,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.name = name
        self.threshold = threshold
        self.half_open_after = half_open_after
        self._clock = clock
        self._lock = asyncio.Lock()

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: float | None = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Raises:
            CircuitOpenError: If the circuit rejects the call.
            Exception: Any exception from ``func``.
        """
        async with self._lock:
            self._before_call()

        try:
            result = await func(*args, **kwargs)
        except Exception:
            async with self._lock:
                self._on_failure()
            raise
        except BaseException:
            # cancelled mid-call; no lock await while unwinding
            self._on_abort()
            raise

        async with self._lock:
            self._on_success()
        return result

    def _before_call(self) -> None:
        if self._state is CircuitState.CLOSED:
            return

        if self._state is CircuitState.OPEN:
            elapsed = self._clock() - (self._opened_at or 0.0)
            if elapsed < self.half_open_after:
                raise CircuitOpenError(self.name, self.half_open_after - elapsed)
            self._transition(CircuitState.HALF_OPEN)

        if self._probe_in_flight:
            raise CircuitOpenError(self.name, self.half_open_after)
        self._probe_in_flight = True

    def _on_success(self) -> None:
        self._consecutive_failures = 0
        self._probe_in_flight = False
        if self._state is not CircuitState.CLOSED:
            self._transition(CircuitState.CLOSED)

    def _on_failure(self) -> None:
        self._consecutive_failures += 1
        self._probe_in_flight = False
        if self._state is CircuitState.HALF_OPEN or (
            self._state is CircuitState.CLOSED
            and self._consecutive_failures >= self.threshold
        ):
            self._opened_at = self._clock()
            self._transition(CircuitState.OPEN)

    def _on_abort(self) -> None:
        if not self._probe_in_flight:
            return
        self._probe_in_flight = False
        self._opened_at = self._clock()
        self._transition(CircuitState.OPEN)

    def _transition(self, state: CircuitState) -> None:
        logger.info(
            "Circuit '%s' transition %s -> %s",
            self.name,
            self._state.value,
            state.value,
        )
        self._state = state
