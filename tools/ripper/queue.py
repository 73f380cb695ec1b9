"""Bounded download queue – at most ``limit`` jobs in flight."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger("ripper.queue")

T = TypeVar("T")


class BoundedTaskQueue(Generic[T]):
    """Run awaitables concurrently, but never more than ``limit`` at once.

    ``submit`` suspends the caller while the queue is full. Every result is
    handed to ``on_outcome`` exactly once, in the order the jobs finished,
    whenever the caller is suspended in ``submit`` or ``drain``.
    """

    def __init__(self, limit: int, on_outcome: Callable[[T], None]) -> None:
        if limit < 1:
            raise ValueError("queue limit must be at least 1")
        self.limit = limit
        self.on_outcome = on_outcome
        self._running: set[asyncio.Task[T]] = set()
        self._finished: deque[asyncio.Task[T]] = deque()
        self._wakeup = asyncio.Event()

    @property
    def in_flight(self) -> int:
        return len(self._running)

    def _on_done(self, task: asyncio.Task[T]) -> None:
        self._running.discard(task)
        self._finished.append(task)
        self._wakeup.set()

    def _report(self) -> None:
        while self._finished:
            task = self._finished.popleft()
            if task.cancelled():
                continue
            self.on_outcome(task.result())

    async def _wait_one(self) -> None:
        self._wakeup.clear()
        await self._wakeup.wait()
        self._report()

    async def submit(self, job: Awaitable[T]) -> None:
        """Start ``job``, first waiting for a free slot if the queue is full."""
        while len(self._running) >= self.limit:
            await self._wait_one()
        self._report()
        task = asyncio.ensure_future(job)
        self._running.add(task)
        task.add_done_callback(self._on_done)

    async def drain(self) -> None:
        """Wait for every job in flight and report the outcomes."""
        while self._running:
            await self._wait_one()
        self._report()

    async def cancel(self) -> None:
        """Cancel everything still running, without reporting."""
        if not self._running:
            return
        logger.debug("Cancelling %d unfinished jobs", len(self._running))
        pending = list(self._running)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._finished.clear()
