"""Bounded-concurrency, rate-limited queue for enrichment tasks."""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Optional

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[object]]


class RateLimitedQueue:
    """Runs queued coroutine factories with at most ``concurrent`` in flight
    and at least ``interval`` seconds between consecutive task starts.

    ``clear()`` drops jobs that have not started yet; running jobs finish.
    """

    def __init__(
        self,
        *,
        concurrent: int = 1,
        interval: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if concurrent < 1:
            raise ValueError("concurrent must be at least 1")
        self._concurrent = concurrent
        self._interval = max(0.0, interval)
        self._clock = clock
        self._sleep = sleep
        self._pending: Deque[Job] = deque()
        self._slots = asyncio.Semaphore(concurrent)
        self._in_flight: set[asyncio.Task] = set()
        self._runner: Optional[asyncio.Task] = None
        self._last_start: Optional[float] = None
        self.completed = 0
        self.failed = 0

    @property
    def size(self) -> int:
        return len(self._pending)

    @property
    def is_empty(self) -> bool:
        return not self._pending

    @property
    def is_running(self) -> bool:
        return bool(self._in_flight) or (self._runner is not None and not self._runner.done())

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def state(self) -> dict:
        return {
            "size": self.size,
            "is_empty": self.is_empty,
            "is_running": self.is_running,
            "in_flight": self.in_flight,
            "concurrent": self._concurrent,
            "interval": self._interval,
            "completed": self.completed,
            "failed": self.failed,
        }

    def enqueue(self, job: Job) -> None:
        self._pending.append(job)
        if self._runner is None or self._runner.done():
            self._runner = asyncio.get_running_loop().create_task(self._drain())

    def clear(self) -> int:
        dropped = len(self._pending)
        self._pending.clear()
        return dropped

    async def join(self) -> None:
        """Wait until nothing is pending or running."""
        while True:
            if self._runner is not None and not self._runner.done():
                await self._runner
            elif self._in_flight:
                await asyncio.gather(*list(self._in_flight), return_exceptions=True)
            else:
                return

    async def _drain(self) -> None:
        while self._pending:
            await self._slots.acquire()
            started = False
            try:
                await self._wait_for_interval()
                if not self._pending:
                    break
                job = self._pending.popleft()
                self._last_start = self._clock()
                task = asyncio.get_running_loop().create_task(self._run(job))
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
                started = True
            finally:
                if not started:
                    self._slots.release()

    async def _wait_for_interval(self) -> None:
        if self._last_start is None:
            return
        elapsed = self._clock() - self._last_start
        if elapsed < self._interval:
            await self._sleep(self._interval - elapsed)

    async def _run(self, job: Job) -> None:
        try:
            await job()
            self.completed += 1
        except Exception:
            self.failed += 1
            logger.exception("Queued enrichment task failed")
        finally:
            self._slots.release()
