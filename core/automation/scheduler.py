"""Cancellable fixed-interval async loop.

Shared by the valuation engine and the automation monitor.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs `callback` every `interval` seconds until stopped.

    A tick that raises is logged and the loop keeps going. `stop()` is
    observed between ticks; cancelling the task interrupts the current tick.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[object]],
        *,
        max_iterations: Optional[int] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.name = name
        self.interval = interval
        self.max_iterations = max_iterations
        self._callback = callback
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self.iterations = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> None:
        self.iterations += 1
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"{self.name} tick {self.iterations} failed: {e}")

    async def run(self) -> None:
        """Run the loop in the current task until stopped or cancelled."""
        logger.info(f"Starting {self.name} (interval={self.interval}s)")
        self._stop_event.clear()

        try:
            while not self._stop_event.is_set():
                await self.run_once()

                if self.max_iterations and self.iterations >= self.max_iterations:
                    logger.info(f"{self.name} reached max iterations ({self.max_iterations})")
                    break

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.info(f"{self.name} cancelled")
            raise
        finally:
            logger.info(f"{self.name} stopped")

    def start(self) -> asyncio.Task[None]:
        """Schedule `run()` on the running loop and return the task."""
        if self.running:
            assert self._task is not None
            return self._task
        self._task = asyncio.create_task(self.run(), name=self.name)
        return self._task

    async def stop(self) -> None:
        """Request a stop and wait for the loop to exit."""
        self._stop_event.set()
        task, self._task = self._task, None
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
