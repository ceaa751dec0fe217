"""
Clock and timer abstractions used by the session manager.
Real implementations use wall-clock time and the running asyncio loop; tests swap in fakes.
"""
import asyncio
import time
from typing import Callable, Protocol


class Clock(Protocol):
    def now(self) -> float:
        """Current time in epoch milliseconds."""
        ...


class CancelHandle(Protocol):
    def cancel(self) -> None:
        """Cancel the pending callback. Calling it more than once is a no-op."""
        ...


class Scheduler(Protocol):
    def after(self, delay_ms: float, callback: Callable[[], None]) -> CancelHandle:
        ...


class SystemClock:
    def now(self) -> float:
        return time.time() * 1000


class LoopScheduler:
    """
    Schedules callbacks on an asyncio event loop.
    Without an explicit loop, the loop running at scheduling time is used.
    asyncio.TimerHandle.cancel() is idempotent, so the handle is returned as-is.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def after(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(delay_ms, 0) / 1000, callback)
