"""
Cancellable fixed-interval background tasks.

Discovery, per-match polling and per-trade exit monitoring all run as
``PeriodicTask`` instances.  The body returns ``False`` to end the loop;
``stop()`` ends it from the outside.  Exceptions raised by the body are
logged and the loop carries on with the next tick.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

TaskBody = Callable[[], Awaitable[Optional[bool]]]


class PeriodicTask:
    def __init__(
        self,
        name: str,
        interval: float,
        body: TaskBody,
        *,
        guard: Callable[[], bool] | None = None,
    ):
        self.name = name
        self.interval = interval
        self._body = body
        self._guard = guard
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "PeriodicTask":
        if self.running:
            return self
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name=self.name)
        return self

    def stop(self) -> None:
        """Signal the loop to exit after the current tick."""
        self._stop.set()

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def cancel(self) -> None:
        """Stop and cancel immediately, waiting for the task to finish."""
        self._stop.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        logger.debug("Task %s started (every %.2fs)", self.name, self.interval)
        while not self._stop.is_set():
            if self._guard is not None and not self._guard():
                break
            self.ticks += 1
            try:
                if await self._body() is False:
                    break
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Task %s tick failed", self.name)

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        logger.debug("Task %s finished after %d ticks", self.name, self.ticks)
