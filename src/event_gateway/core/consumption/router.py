# event_gateway/core/consumption/router.py
"""
Broadcast routing of events to consumers.

The router hands one job per registered consumer to a bounded worker pool.
A consumer failure is logged and never reaches other consumers or the
caller of :meth:`BroadcastEventRouter.route_event`.

Example:
    pool = EventWorkerPool(core_size=2, max_size=4, queue_capacity=500)
    router = BroadcastEventRouter(registry=consumer_registry, pool=pool)

    await router.start()
    await router.route_event(event)
    await router.stop()
"""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import Awaitable, Callable

from event_gateway.contracts.consumer import EventConsumer
from event_gateway.contracts.events import RepoEvent
from event_gateway.core.consumption.registry import EventConsumerRegistry

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


class EventWorkerPool:
    """
    Bounded pool of worker tasks fed by a bounded queue.

    ``core_size`` workers run for the whole life of the pool. When the queue
    is full, extra workers are started up to ``max_size``; they stop after
    ``keep_alive`` seconds without work. When the queue is full and every
    worker is running, :meth:`submit` waits for room.
    """

    def __init__(
        self,
        core_size: int = 2,
        max_size: int = 2,
        queue_capacity: int = 500,
        keep_alive: float = 60.0,
        name: str = "consumption",
    ) -> None:
        if core_size < 1:
            raise ValueError("core_size must be at least 1")
        if max_size < core_size:
            raise ValueError("max_size must not be lower than core_size")
        if queue_capacity < 1:
            raise ValueError("queue_capacity must be at least 1")

        self._core_size = core_size
        self._max_size = max_size
        self._keep_alive = keep_alive
        self._name = name
        self._queue_capacity = queue_capacity
        self._queue: asyncio.Queue[Job] | None = None
        self._workers: set[asyncio.Task] = set()
        self._worker_seq = 0
        self._error_count = 0

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def is_running(self) -> bool:
        return self._queue is not None

    def start(self) -> None:
        if self._queue is not None:
            return
        self._queue = asyncio.Queue(maxsize=self._queue_capacity)
        for _ in range(self._core_size):
            self._spawn(core=True)
        logger.info(
            "Started worker pool '%s' (core=%d, max=%d, queue=%d)",
            self._name,
            self._core_size,
            self._max_size,
            self._queue_capacity,
        )

    async def submit(self, job: Job) -> None:
        if self._queue is None:
            self.start()
        assert self._queue is not None

        if self._queue.full() and len(self._workers) < self._max_size:
            self._spawn(core=False)
        await self._queue.put(job)

    async def join(self) -> None:
        """Wait until every submitted job has run."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, drain: bool = True) -> None:
        if self._queue is None:
            return
        if drain:
            await self._queue.join()

        workers = list(self._workers)
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._workers.clear()
        self._queue = None
        logger.info("Stopped worker pool '%s'", self._name)

    def _spawn(self, core: bool) -> None:
        self._worker_seq += 1
        task = asyncio.create_task(
            self._worker(core),
            name=f"{self._name}-{self._worker_seq}",
        )
        self._workers.add(task)
        task.add_done_callback(self._workers.discard)

    async def _worker(self, core: bool) -> None:
        queue = self._queue
        assert queue is not None
        while True:
            if core:
                job = await queue.get()
            else:
                try:
                    job = await asyncio.wait_for(queue.get(), self._keep_alive)
                except asyncio.TimeoutError:
                    logger.debug("Idle extra worker of pool '%s' retiring", self._name)
                    return
            try:
                await job()
            except Exception as exc:
                self._error_count += 1
                logger.error("Job failed in pool '%s': %s", self._name, exc, exc_info=True)
            finally:
                queue.task_done()


class BroadcastEventRouter:
    """Routes every event to every registered consumer."""

    def __init__(
        self,
        registry: EventConsumerRegistry,
        pool: EventWorkerPool | None = None,
    ) -> None:
        self._registry = registry
        self._pool = pool or EventWorkerPool()
        self._routed_count = 0
        self._error_count = 0

    @property
    def registry(self) -> EventConsumerRegistry:
        return self._registry

    @property
    def pool(self) -> EventWorkerPool:
        return self._pool

    @property
    def routed_count(self) -> int:
        """Total number of events routed."""
        return self._routed_count

    @property
    def error_count(self) -> int:
        """Total number of consumer failures."""
        return self._error_count

    async def start(self) -> None:
        self._pool.start()

    async def stop(self) -> None:
        await self._pool.stop()

    async def route_event(self, event: RepoEvent) -> None:
        """
        Submit the event to every consumer registered at call time.

        Waits only when the pool queue is full, never for the consumers.
        """
        self._routed_count += 1
        for consumer in self._registry.get_all():
            await self._pool.submit(functools.partial(self._invoke_consumer, consumer, event))

    async def _invoke_consumer(self, consumer: EventConsumer, event: RepoEvent) -> None:
        try:
            await consumer.consume_event(event)
        except Exception as exc:
            self._error_count += 1
            logger.error(
                "Error invoking the consumer %r with the event %s: %s",
                consumer,
                event.id,
                exc,
                exc_info=True,
            )
