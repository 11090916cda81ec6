"""
Scheduled Retry
===============
Cancellable fixed-interval retry schedule (interval + deadline + cancel token).

Usage:
    schedule = ScheduledRetry(interval_sec=2.0, timeout_sec=60.0, cancel_event=stop)
    async for attempt in schedule:
        if await check():
            break
    if schedule.cancelled:
        ...

The first attempt runs immediately; later attempts wait
min(interval, time left). No attempt starts at or after the deadline, and
setting the cancel event ends the schedule at the next wait. Cancelling
the surrounding task propagates as usual.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional


class ScheduledRetry:
    def __init__(
        self,
        interval_sec: float,
        timeout_sec: float,
        cancel_event: Optional[asyncio.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval_sec <= 0:
            raise ValueError("interval_sec must be positive")
        self.interval_sec = interval_sec
        self.timeout_sec = max(0.0, timeout_sec)
        self.cancel_event = cancel_event
        self._clock = clock
        self._deadline = 0.0
        self._started_at = 0.0
        self.attempts = 0

    def __aiter__(self) -> "ScheduledRetry":
        self._started_at = self._clock()
        self._deadline = self._started_at + self.timeout_sec
        self.attempts = 0
        return self

    async def __anext__(self) -> int:
        if self.attempts > 0:
            remaining = self._deadline - self._clock()
            if remaining <= 0 or self.cancelled:
                raise StopAsyncIteration
            if remaining <= self.interval_sec:
                # Waits up to the deadline; a timer that wakes early must not buy one more attempt.
                await self._wait(remaining)
                raise StopAsyncIteration
            await self._wait(self.interval_sec)

        if self.cancelled or self.expired:
            raise StopAsyncIteration

        self.attempts += 1
        return self.attempts

    async def _wait(self, delay: float) -> None:
        if self.cancel_event is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    @property
    def expired(self) -> bool:
        return self._clock() >= self._deadline

    @property
    def elapsed_sec(self) -> float:
        return self._clock() - self._started_at
