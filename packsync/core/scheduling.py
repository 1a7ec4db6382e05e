"""Clock and timer abstractions used by debounced components."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock returning seconds."""

    def __call__(self) -> float: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback once after ``delay`` seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


def monotonic_clock() -> float:
    return time.monotonic()


class AsyncioScheduler:
    """Scheduler backed by the running event loop's ``call_later``."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)
