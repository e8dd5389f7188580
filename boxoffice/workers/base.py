"""
Periodic background worker.

Each worker owns one asyncio task started from the application lifespan.
The loop sleeps on a stop event rather than asyncio.sleep, so shutdown
interrupts the wait immediately instead of finishing the interval.
Tests never start the loop; they call run_once() with a FrozenClock.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional

from boxoffice.core.clock import Clock
from boxoffice.core.logging import get_logger

logger = get_logger(__name__)


class PeriodicWorker(ABC):
    name = "worker"

    def __init__(self, interval_seconds: float, clock: Clock):
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @abstractmethod
    async def run_once(self) -> Any:
        """One full pass. Must handle per-item failures itself."""

    async def run_forever(self) -> None:
        logger.info("worker_started", worker=self.name, interval_seconds=self.interval_seconds)
        while not self._stop.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("worker_cycle_failed", worker=self.name)

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("worker_stopped", worker=self.name)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._stop.clear()
            self._task = asyncio.create_task(self.run_forever(), name=self.name)
        return self._task

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
