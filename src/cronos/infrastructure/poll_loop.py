"""Async polling loop for periodic housekeeping."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from cronos.infrastructure.logger import logger

PollFn = Callable[[], Awaitable[None] | None]


class PollLoop:
    """Calls fn every interval_s seconds until stopped. Errors are logged, not raised."""

    def __init__(self, name: str, interval_s: float, fn: PollFn) -> None:
        self._name = name
        self._interval = interval_s
        self._fn = fn
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"{self._name} loop started", interval_s=self._interval)

    def stop(self) -> None:
        if self._task:
            self._task.cancel()
            self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                result = self._fn()
                if asyncio.iscoroutine(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Error in {self._name} loop")


def start_poll_loop(name: str, interval_s: float, fn: PollFn) -> PollLoop:
    """Create and start a polling loop. Returns a handle to stop it."""
    loop = PollLoop(name, interval_s, fn)
    loop.start()
    return loop
