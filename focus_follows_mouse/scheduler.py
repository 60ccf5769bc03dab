"""
Timer primitives for the coordinator.

Timers are deferred callbacks on the asyncio loop, never thread sleeps.
A cancelled timer never invokes its callback: ``asyncio.TimerHandle.cancel``
guarantees this as long as cancellation happens on the loop thread, which is
the only thread that touches coordinator state.
"""

import asyncio
import logging
import time
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """Handle returned by Scheduler.call_later."""

    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    """One-shot timers plus a clock."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    def now(self) -> float: ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize scheduler.

        Args:
            loop: Event loop to schedule on (defaults to the running loop)
        """
        self._loop = loop or asyncio.get_running_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(max(delay, 0.0), callback)

    def now(self) -> float:
        """Monotonic seconds; only differences are meaningful."""
        return time.monotonic()


class RepeatingTimer:
    """Repeating timer built from one-shot timers.

    Each tick reschedules the next one before running the callback, so a
    failing callback does not stop the timer. ``stop()`` cancels the pending
    tick; ``start()`` after ``stop()`` resumes with a fresh interval.
    """

    def __init__(self, scheduler: Scheduler, interval: float, callback: Callable[[], None], name: str = "timer"):
        self.scheduler = scheduler
        self.interval = interval
        self.callback = callback
        self.name = name
        self._handle: Optional[TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is not None:
            return
        self._handle = self.scheduler.call_later(self.interval, self._tick)
        logger.debug(f"Started repeating timer {self.name} ({self.interval}s)")

    def stop(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        logger.debug(f"Stopped repeating timer {self.name}")

    def _tick(self) -> None:
        self._handle = self.scheduler.call_later(self.interval, self._tick)
        try:
            self.callback()
        except Exception as e:
            logger.error(f"Repeating timer {self.name} callback failed: {e}", exc_info=True)
