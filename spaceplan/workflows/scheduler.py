"""Delayed-callback schedulers for conversation pacing.

LoopScheduler runs callbacks on the asyncio loop. ManualScheduler keeps a
virtual clock that tests (and the API test client) advance explicitly, so
reveal sequences are deterministic and instant.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from collections.abc import Callable
from typing import Protocol

import structlog

logger = structlog.get_logger()


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> None: ...


class LoopScheduler:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_later(max(delay, 0.0), self._run, callback)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("scheduled_callback_failed")


class ManualScheduler:
    """Virtual-time scheduler. Callbacks run only from advance() / run_until_idle()."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, Callable[[], None]]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        heapq.heappush(self._queue, (self.now + max(delay, 0.0), next(self._seq), callback))

    @property
    def pending(self) -> int:
        return len(self._queue)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every callback due by the new time.

        Callbacks scheduled while advancing also run if they fall due within
        the window. Returns the number of callbacks run.
        """
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, callback = heapq.heappop(self._queue)
            self.now = due
            callback()
            ran += 1
        self.now = target
        return ran

    def run_until_idle(self, limit: int = 1000) -> int:
        """Run callbacks in due order until nothing is pending."""
        ran = 0
        while self._queue:
            if ran >= limit:
                raise RuntimeError(f"scheduler still busy after {limit} callbacks")
            due, _, callback = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            callback()
            ran += 1
        return ran
