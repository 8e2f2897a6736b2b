"""Single-shot wall-clock deadline using asyncio."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable

from cronos.infrastructure.config import TIMER_MAX_SLEEP

Clock = Callable[[], datetime]


class DeadlineTimer:
    """Calls callback once the clock reaches fire_at.

    Sleeps in slices of at most max_sleep_s and re-reads the clock each time,
    so wall-clock jumps and system suspend are picked up within one slice.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        fire_at: datetime,
        clock: Clock = datetime.now,
        max_sleep_s: float = TIMER_MAX_SLEEP,
    ) -> None:
        self._callback = callback
        self.fire_at = fire_at
        self._clock = clock
        self._max_sleep = max_sleep_s
        self._task: asyncio.Task[None] | None = asyncio.get_running_loop().create_task(self._run())

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            remaining = (self.fire_at - self._clock()).total_seconds()
            if remaining <= 0:
                break
            await asyncio.sleep(min(remaining, self._max_sleep))
        self._task = None
        self._callback()

    def cancel(self) -> None:
        """Cancel the deadline without firing the callback."""
        if self._task:
            self._task.cancel()
            self._task = None
