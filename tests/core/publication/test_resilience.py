import asyncio

import pytest

from event_gateway.core.exceptions import CircuitOpenError, EventPublicationError
from event_gateway.core.publication.resilience import (
    CircuitBreaker,
    CircuitState,
    RetryPolicy,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class Flaky:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise EventPublicationError("down")
        return "ok"


async def no_sleep(_: float) -> None:
    return None


class TestRetryPolicy:
    def test_fixed_delay(self):
        policy = RetryPolicy.fixed(max_attempts=3, interval=2.0)

        assert [policy.delay(n) for n in range(3)] == [2.0, 2.0, 2.0]

    def test_exponential_delay_is_capped(self):
        policy = RetryPolicy.exponential(
            max_attempts=5, initial_interval=0.5, multiplier=2.0, max_interval=3.0
        )

        assert [policy.delay(n) for n in range(4)] == [0.5, 1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        func = Flaky(failures=2)
        delays: list[float] = []

        async def sleep(delay: float) -> None:
            delays.append(delay)

        result = await RetryPolicy.fixed(3, 0.25).call(func, sleep=sleep)

        assert result == "ok"
        assert func.calls == 3
        assert delays == [0.25, 0.25]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        func = Flaky(failures=5)

        with pytest.raises(EventPublicationError):
            await RetryPolicy.fixed(3, 0).call(func, sleep=no_sleep)

        assert func.calls == 3

    @pytest.mark.asyncio
    async def test_does_not_retry_other_errors(self):
        calls = 0

        async def broken() -> None:
            nonlocal calls
            calls += 1
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await RetryPolicy.fixed(3, 0).call(broken, sleep=no_sleep)

        assert calls == 1


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_opens_after_threshold_consecutive_failures(self):
        breaker = CircuitBreaker("test", threshold=2, half_open_after=5.0, clock=FakeClock())
        func = Flaky(failures=10)

        for _ in range(2):
            with pytest.raises(EventPublicationError):
                await breaker.call(func)

        assert breaker.state is CircuitState.OPEN
        with pytest.raises(CircuitOpenError):
            await breaker.call(func)
        assert func.calls == 2

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self):
        breaker = CircuitBreaker("test", threshold=2, clock=FakeClock())
        func = Flaky(failures=1)

        with pytest.raises(EventPublicationError):
            await breaker.call(func)
        await breaker.call(func)

        assert breaker.consecutive_failures == 0
        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_probe_after_half_open_delay_closes_on_success(self):
        clock = FakeClock()
        breaker = CircuitBreaker("test", threshold=1, half_open_after=5.0, clock=clock)
        func = Flaky(failures=1)

        with pytest.raises(EventPublicationError):
            await breaker.call(func)

        clock.now += 4.9
        with pytest.raises(CircuitOpenError):
            await breaker.call(func)

        clock.now += 0.2
        assert await breaker.call(func) == "ok"
        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failed_probe_reopens(self):
        clock = FakeClock()
        breaker = CircuitBreaker("test", threshold=1, half_open_after=5.0, clock=clock)
        func = Flaky(failures=2)

        with pytest.raises(EventPublicationError):
            await breaker.call(func)
        clock.now += 5.0
        with pytest.raises(EventPublicationError):
            await breaker.call(func)

        assert breaker.state is CircuitState.OPEN
        with pytest.raises(CircuitOpenError):
            await breaker.call(func)

    @pytest.mark.asyncio
    async def test_cancelled_probe_reopens_and_allows_next_probe(self):
        clock = FakeClock()
        breaker = CircuitBreaker("test", threshold=1, half_open_after=5.0, clock=clock)
        with pytest.raises(EventPublicationError):
            await breaker.call(Flaky(failures=1))
        clock.now += 5.0

        started = asyncio.Event()

        async def hanging() -> None:
            started.set()
            await asyncio.Event().wait()

        probe = asyncio.create_task(breaker.call(hanging))
        await started.wait()
        probe.cancel()
        with pytest.raises(asyncio.CancelledError):
            await probe

        assert breaker.state is CircuitState.OPEN
        clock.now += 5.0
        assert await breaker.call(Flaky(failures=0)) == "ok"
        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_retry_inside_breaker_counts_one_failure(self):
        breaker = CircuitBreaker("test", threshold=2, clock=FakeClock())
        func = Flaky(failures=3)

        with pytest.raises(EventPublicationError):
            await breaker.call(RetryPolicy.fixed(3, 0).call, func, sleep=no_sleep)

        assert func.calls == 3
        assert breaker.consecutive_failures == 1
        assert breaker.state is CircuitState.CLOSED
