"""Cancellable timers for the session choreography.

Every delayed callback the session schedules goes through a `TimerGroup`,
so a reset or teardown can cancel all of them at once.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """Schedules on the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class TimerGroup:
    """A named set of outstanding timers that can be cancelled together.

    Fired timers remove themselves from the group.
    """

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handles: dict[int, TimerHandle] = {}
        self._next_id = 0

    def schedule(self, delay: float, callback: Callable[[], None]) -> int:
        timer_id = self._next_id
        self._next_id += 1

        def fire() -> None:
            if self._handles.pop(timer_id, None) is not None:
                callback()

        self._handles[timer_id] = self._scheduler.call_later(delay, fire)
        return timer_id

    def cancel(self, timer_id: int) -> None:
        handle = self._handles.pop(timer_id, None)
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            handle.cancel()

    def __len__(self) -> int:
        return len(self._handles)
