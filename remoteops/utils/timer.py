"""Cancellable waits for polling loops."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class CancellableTimer:
    """Sleep that ends early when the caller's stop event is set.

    Task cancellation propagates as usual. ``clock`` and ``sleep`` are
    injectable so polling loops can be tested without real waiting.
    """

    def __init__(
        self,
        stop: Optional[asyncio.Event] = None,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._stop = stop
        self._clock = clock
        self._sleep = sleep

    @property
    def stopped(self) -> bool:
        return self._stop is not None and self._stop.is_set()

    def now(self) -> float:
        return self._clock()

    async def wait(self, seconds: float) -> bool:
        """Wait up to *seconds*. Returns False if stopped before the end."""
        if seconds <= 0:
            return not self.stopped
        if self._stop is None:
            await self._sleep(seconds)
            return True
        if self._stop.is_set():
            return False

        stop_task = asyncio.ensure_future(self._stop.wait())
        sleep_task = asyncio.ensure_future(self._sleep(seconds))
        try:
            await asyncio.wait(
                {stop_task, sleep_task}, return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (stop_task, sleep_task):
                if not task.done():
                    task.cancel()
        return not self._stop.is_set()
